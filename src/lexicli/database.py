import os
import sqlite3
from typing import Optional

from .config import settings


def default_db_path() -> str:
    return os.path.join(settings.DB_DIR, settings.DB_FILE)


def get_db_connection(db_path: Optional[str] = None):
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(db_path or default_db_path())
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_path: Optional[str] = None):
    """Creates the store and log tables if they don't exist."""
    conn = get_db_connection(db_path)
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS test_records (
                test_name TEXT PRIMARY KEY,
                words TEXT NOT NULL
            );
        """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS vocabulary (
                key TEXT PRIMARY KEY,
                words TEXT NOT NULL
            );
        """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                logger TEXT,
                level TEXT,
                message TEXT
            );
        """
        )
    conn.close()


def init_db(db_path: Optional[str] = None):
    """Initializes the database and creates necessary tables."""
    db_path = db_path or default_db_path()
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir)
    create_tables(db_path)
