"""
SpendSense - Storage Backends

All persistence goes through a `Storage` object. Two backends share one
contract:

- MemStorage: dict-backed, process lifetime only (the default)
- SqliteStorage: the same contract on a SQLite file

Every query is scoped by user_id; callers never see another user's rows.
Transaction lists come back newest first.

License: MIT
"""

import datetime
import logging
import sqlite3
import threading
from pathlib import Path

from .models import Transaction, User, parse_datetime
from .setup_sqlite import create_database

logger = logging.getLogger(__name__)


def _month_bounds(year, month):
    """
    [start, end) of a calendar month in UTC. month is 1..12.
    end is None for December of datetime.MAXYEAR (no following month).
    """
    start = datetime.datetime(year, month, 1, tzinfo=datetime.timezone.utc)
    if month == 12 and year == datetime.MAXYEAR:
        end = None
    elif month == 12:
        end = datetime.datetime(year + 1, 1, 1, tzinfo=datetime.timezone.utc)
    else:
        end = datetime.datetime(year, month + 1, 1, tzinfo=datetime.timezone.utc)
    return start, end


def _newest_first(transactions):
    return sorted(transactions, key=lambda t: (t.date, t.id), reverse=True)


class Storage:
    """Interface implemented by every backend."""

    def get_user(self, user_id):
        raise NotImplementedError

    def get_user_by_username(self, username):
        raise NotImplementedError

    def create_user(self, username, password_hash):
        """Returns the new User, or None if the username is taken."""
        raise NotImplementedError

    def update_password(self, user_id, password_hash):
        raise NotImplementedError

    def delete_user(self, user_id):
        """Remove a user and all of their transactions. Returns True if the user existed."""
        raise NotImplementedError

    def get_transactions(self, user_id):
        raise NotImplementedError

    def get_transactions_by_month(self, user_id, year, month):
        raise NotImplementedError

    def create_transaction(self, user_id, data):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError


class MemStorage(Storage):
    """
    In-memory storage. Ids are assigned from per-table counters starting at 1.

    A lock guards the maps: Flask serves requests on worker threads and the
    combined AI insights call reads from several threads at once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.clear()

    def clear(self):
        with self._lock:
            self.users = {}
            self.transactions = {}
            self.current_user_id = 1
            self.current_transaction_id = 1

    def get_user(self, user_id):
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            return None
        with self._lock:
            return self.users.get(user_id)

    def get_user_by_username(self, username):
        with self._lock:
            for user in self.users.values():
                if user.username == username:
                    return user
        return None

    def create_user(self, username, password_hash):
        with self._lock:
            # Uniqueness is checked under the same lock as the insert
            if any(u.username == username for u in self.users.values()):
                return None
            user = User(id=self.current_user_id, username=username, password_hash=password_hash)
            self.users[user.id] = user
            self.current_user_id += 1
            return user

    def update_password(self, user_id, password_hash):
        with self._lock:
            user = self.users.get(int(user_id))
            if user is None:
                return False
            user.password_hash = password_hash
            return True

    def delete_user(self, user_id):
        with self._lock:
            if self.users.pop(user_id, None) is None:
                return False
            self.transactions = {
                tid: t for tid, t in self.transactions.items() if t.user_id != user_id
            }
            return True

    def get_transactions(self, user_id):
        with self._lock:
            rows = [t for t in self.transactions.values() if t.user_id == user_id]
        return _newest_first(rows)

    def get_transactions_by_month(self, user_id, year, month):
        start, end = _month_bounds(year, month)
        with self._lock:
            rows = [
                t for t in self.transactions.values()
                if t.user_id == user_id and start <= t.date and (end is None or t.date < end)
            ]
        return _newest_first(rows)

    def create_transaction(self, user_id, data):
        with self._lock:
            transaction = Transaction(
                id=self.current_transaction_id,
                user_id=user_id,
                amount=data['amount'],
                category=data['category'],
                description=data.get('description'),
                date=data['date'],
                is_income=bool(data.get('is_income', False)),
            )
            self.transactions[transaction.id] = transaction
            self.current_transaction_id += 1
            return transaction


class SqliteStorage(Storage):
    """
    SQLite-backed storage.

    A new connection is opened per call (sqlite3 connections cannot be shared
    across threads by default). Dates are stored as ISO-8601 UTC strings so
    lexical order equals chronological order.
    """

    def __init__(self, db_path):
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            logger.info("Database not found - creating fresh database at %s", self.db_path)
        create_database(self.db_path)

    def _get_db_connection(self):
        """
        Returns:
            tuple: (connection, cursor); callers close both.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.row_factory = sqlite3.Row
        return conn, conn.cursor()

    @staticmethod
    def _to_date_str(value):
        return value.astimezone(datetime.timezone.utc).isoformat()

    @staticmethod
    def _row_to_user(row):
        if row is None:
            return None
        return User(id=row['user_id'], username=row['username'], password_hash=row['password_hash'])

    @staticmethod
    def _row_to_transaction(row):
        return Transaction(
            id=row['transaction_id'],
            user_id=row['user_id'],
            amount=row['amount'],
            category=row['category'],
            description=row['description'],
            date=parse_datetime(row['date']),
            is_income=bool(row['is_income']),
        )

    def clear(self):
        conn, cursor = self._get_db_connection()
        try:
            cursor.execute("DELETE FROM transactions")
            cursor.execute("DELETE FROM users")
            cursor.execute("DELETE FROM sqlite_sequence WHERE name IN ('users', 'transactions')")
            conn.commit()
        finally:
            cursor.close()
            conn.close()

    def get_user(self, user_id):
        conn, cursor = self._get_db_connection()
        try:
            cursor.execute("SELECT user_id, username, password_hash FROM users WHERE user_id = ?", (user_id,))
            return self._row_to_user(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def get_user_by_username(self, username):
        conn, cursor = self._get_db_connection()
        try:
            cursor.execute("SELECT user_id, username, password_hash FROM users WHERE username = ?", (username,))
            return self._row_to_user(cursor.fetchone())
        finally:
            cursor.close()
            conn.close()

    def create_user(self, username, password_hash):
        conn, cursor = self._get_db_connection()
        try:
            cursor.execute(
                "INSERT INTO users (username, password_hash) VALUES (?, ?)",
                (username, password_hash)
            )
            conn.commit()
            return User(id=cursor.lastrowid, username=username, password_hash=password_hash)
        except sqlite3.IntegrityError:
            # UNIQUE(username) lost a race with a concurrent registration
            conn.rollback()
            return None
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update_password(self, user_id, password_hash):
        conn, cursor = self._get_db_connection()
        try:
            cursor.execute("UPDATE users SET password_hash = ? WHERE user_id = ?", (password_hash, user_id))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            cursor.close()
            conn.close()

    def delete_user(self, user_id):
        conn, cursor = self._get_db_connection()
        try:
            # transactions go with the user via ON DELETE CASCADE
            cursor.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
            conn.commit()
            return cursor.rowcount > 0
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def get_transactions(self, user_id):
        conn, cursor = self._get_db_connection()
        try:
            cursor.execute(
                "SELECT * FROM transactions WHERE user_id = ? ORDER BY date DESC, transaction_id DESC",
                (user_id,)
            )
            return [self._row_to_transaction(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def get_transactions_by_month(self, user_id, year, month):
        start, end = _month_bounds(year, month)
        query = "SELECT * FROM transactions WHERE user_id = ? AND date >= ?"
        params = [user_id, self._to_date_str(start)]
        if end is not None:
            query += " AND date < ?"
            params.append(self._to_date_str(end))
        query += " ORDER BY date DESC, transaction_id DESC"

        conn, cursor = self._get_db_connection()
        try:
            cursor.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]
        finally:
            cursor.close()
            conn.close()

    def create_transaction(self, user_id, data):
        conn, cursor = self._get_db_connection()
        try:
            cursor.execute("""
                INSERT INTO transactions (user_id, amount, category, description, date, is_income)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                user_id,
                data['amount'],
                data['category'],
                data.get('description'),
                self._to_date_str(data['date']),
                1 if data.get('is_income') else 0,
            ))
            conn.commit()
            return Transaction(
                id=cursor.lastrowid,
                user_id=user_id,
                amount=data['amount'],
                category=data['category'],
                description=data.get('description'),
                date=data['date'],
                is_income=bool(data.get('is_income', False)),
            )
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()


def create_storage(config):
    """Build the backend named by config.STORAGE_BACKEND."""
    backend = (config.STORAGE_BACKEND or 'memory').lower()
    if backend == 'memory':
        logger.info("Using in-memory storage")
        return MemStorage()
    if backend == 'sqlite':
        logger.info("Using SQLite storage at %s", config.DATABASE_PATH)
        return SqliteStorage(config.DATABASE_PATH)
    raise ValueError(f"Unknown storage backend: {config.STORAGE_BACKEND}")
