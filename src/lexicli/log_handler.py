import logging
from typing import Optional

from .database import get_db_connection


class SQLiteHandler(logging.Handler):
    """Writes log records into the `logs` table next to the store tables."""

    def __init__(self, db_path: Optional[str] = None, level=logging.INFO):
        super().__init__(level)
        self.db_path = db_path

    def emit(self, record):
        try:
            conn = get_db_connection(self.db_path)
            with conn:
                conn.execute(
                    "INSERT INTO logs (logger, level, message) VALUES (?, ?, ?)",
                    (record.name, record.levelname, self.format(record)),
                )
            conn.close()
        except Exception:
            self.handleError(record)
