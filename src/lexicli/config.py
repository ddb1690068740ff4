import os


class Settings:
    PROJECT_NAME: str = "lexicli"
    DEBUG: bool = os.environ.get("LEXICLI_DEBUG", "") == "1"
    LOG_DIR: str = os.environ.get("LEXICLI_LOG_DIR", "log")
    LOG_FILE: str = "lexicli.log"
    LOG_TO_DB: bool = os.environ.get("LEXICLI_LOG_TO_DB", "") == "1"
    # One of "sqlite", "redis", "memory" or "none" (no persistence).
    STORE_BACKEND: str = os.environ.get("LEXICLI_STORE_BACKEND", "sqlite")
    DB_DIR: str = os.environ.get("LEXICLI_DB_DIR", "db")
    DB_FILE: str = "lexicli.db"
    REDIS_URL: str = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    REDIS_PREFIX: str = "lexicli"
    VOCAB_FILE: str = os.environ.get("LEXICLI_VOCAB_FILE", "vocabulary/vocab.json")
    SESSION_COOKIE_NAME: str = "lexicli_session_id"
    SESSION_TIMEOUT_MINUTES: int = 120
    HISTORY_SIZE: int = 100
    MAX_OUTPUT_LINES: int = 200
    REVIEW_DIRECTION: str = "en-to-ja"
    ROOT_PATH: str = os.environ.get("ROOT_PATH", "")


settings = Settings()
