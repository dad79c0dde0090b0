import os


def _flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Settings:
    PROJECT_NAME: str = "vocabtest"
    DEBUG: bool = _flag("DEBUG")
    LOG_DIR: str = os.environ.get("LOG_DIR", "log")
    LOG_FILE: str = "vocabtest.log"
    LOG_TO_DB: bool = _flag("LOG_TO_DB", "1")
    DB_DIR: str = os.environ.get("DB_DIR", "db")
    DB_FILE: str = os.environ.get("DB_FILE", "vocabtest.db")
    SESSION_COOKIE_NAME: str = os.environ.get("SESSION_COOKIE_NAME", "vocabtest_session")
    SESSION_DAYS: int = int(os.environ.get("SESSION_DAYS", "30"))
    COOKIE_SECURE: bool = _flag("COOKIE_SECURE")
    HISTORY_LIMIT: int = 12
    ROOT_PATH: str = os.environ.get("ROOT_PATH", "")

    @property
    def db_path(self) -> str:
        return os.path.join(self.DB_DIR, self.DB_FILE)


settings = Settings()
