from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Static corpus (manifest, surah text, tafsir)
    corpus_base_url: str = "http://localhost:8080/"
    manifest_path: str = "allSurahsMeta.json"
    chapter_path_template: str = "surah/surah_{chapter_id}.json"
    commentary_path_template: str = "tafseer/{chapter_id}/{verse_number}.json"
    http_timeout: float = 30.0

    # Key/value persistence
    database_url: str = "sqlite:///./quranchat.db"

    # Chat
    max_recent_sessions: int = 7
    max_search_results: int = 7
    preview_length: int = 35

    # Frontend URL (for CORS)
    frontend_url: str = "http://localhost:3000"

    # Rate limits
    message_rate_limit: str = "30/minute"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
