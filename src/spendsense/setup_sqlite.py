"""
SpendSense - SQLite Database Setup & Initialization

Creates the schema used by the sqlite storage backend.

Database Schema Overview:
------------------------
- users: User authentication (bcrypt password hashes)
- transactions: Income and expense entries, amounts in paise

Key Design Features:
- Foreign key constraints with cascade deletes for user data
- Index on (user_id, date) for the newest-first and per-month queries
- Dates stored as ISO-8601 UTC TEXT

License: MIT
"""

import logging
import sqlite3
from pathlib import Path

from .config import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)


def get_db_path(config=None):
    """Return the path to the SQLite database file"""
    if config is not None and getattr(config, 'DATABASE_PATH', None):
        return Path(config.DATABASE_PATH)
    return DEFAULT_DB_PATH


def create_database(db_path=None):
    """
    Create the SpendSense tables if they do not exist yet.

    Existing data is left alone; use reset_database() to start fresh.
    """
    db_path = Path(db_path) if db_path else get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    cursor = conn.cursor()
    cursor.execute("PRAGMA foreign_keys = ON;")

    logger.info("Creating SpendSense database at %s", db_path)
    try:
        # =================================================================
        # TABLE 1: users
        # =================================================================
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # =================================================================
        # TABLE 2: transactions
        # =================================================================
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                transaction_id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                amount INTEGER NOT NULL,
                category TEXT NOT NULL,
                description TEXT,
                date TEXT NOT NULL,
                is_income INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (user_id) REFERENCES users(user_id) ON DELETE CASCADE
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions(user_id, date DESC);")

        conn.commit()
        return True
    except sqlite3.Error as err:
        logger.error("Error creating database: %s", err)
        conn.rollback()
        return False
    finally:
        conn.close()


def reset_database(db_path=None):
    """
    Delete the existing database file and create a fresh one.
    All data is permanently lost.
    """
    db_path = Path(db_path) if db_path else get_db_path()
    if db_path.exists():
        logger.warning("Deleting existing database at %s", db_path)
        db_path.unlink()
    return create_database(db_path)
