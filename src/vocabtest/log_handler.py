import logging

from .database import get_db_connection


class SQLiteHandler(logging.Handler):
    """
    Persists log records into the ``logs`` table of the application database.
    """

    def __init__(self, db_path: str, level=logging.INFO):
        super().__init__(level)
        self.db_path = db_path

    def emit(self, record):
        try:
            conn = get_db_connection(self.db_path)
            try:
                with conn:
                    conn.execute(
                        "INSERT INTO logs (logger, level, message) VALUES (?, ?, ?)",
                        (record.name, record.levelname, self.format(record)),
                    )
            finally:
                conn.close()
        except Exception:
            self.handleError(record)
