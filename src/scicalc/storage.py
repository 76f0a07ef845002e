import logging
import sqlite3
from contextlib import closing
from datetime import datetime
from typing import List, Optional

from scicalc.errors import PersistenceError
from scicalc.history import HistoryEntry, now
from scicalc.settings import Settings

logger = logging.getLogger(__name__)

LOCAL_USER = "local"


class LocalStore:
    """端末内の SQLite に履歴・メモリ・設定を保存する"""

    def __init__(self, db_path: str):
        self.db_path = db_path

    # ---------------------------------------------
    # データベース設計と初期化
    # ---------------------------------------------
    def init(self):
        """データベースの初期化と必要なテーブルの作成"""
        with self._connect() as conn:
            cursor = conn.cursor()

            # 計算履歴テーブル
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                calculation TEXT NOT NULL,
                result REAL NOT NULL,
                timestamp TEXT NOT NULL
            )
            ''')

            # メモリテーブル
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS memory (
                user_id TEXT PRIMARY KEY,
                value REAL NOT NULL
            )
            ''')

            # 設定テーブル
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS settings (
                user_id TEXT PRIMARY KEY,
                scientific_mode INTEGER NOT NULL,
                angle_mode TEXT NOT NULL,
                dark_mode INTEGER NOT NULL
            )
            ''')

    def _connect(self):
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open {self.db_path}: {e}") from e
        return _Transaction(conn)

    # ---------------------------------------------
    # 履歴
    # ---------------------------------------------
    def get_history(self, user_id: str, limit: int = 10) -> List[HistoryEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, calculation, result, timestamp FROM history
                WHERE user_id = ?
                ORDER BY timestamp DESC, id DESC LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [
            HistoryEntry(calculation, result, datetime.fromisoformat(ts), str(row_id))
            for row_id, calculation, result, ts in rows
        ]

    def append_history(self, user_id: str, text: str, value: float) -> HistoryEntry:
        timestamp = now()
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO history (user_id, calculation, result, timestamp) VALUES (?, ?, ?, ?)",
                (user_id, text, float(value), timestamp.isoformat()),
            )
            row_id = cursor.lastrowid
        return HistoryEntry(text, float(value), timestamp, str(row_id))

    def clear_history(self, user_id: str) -> bool:
        with self._connect() as conn:
            conn.execute("DELETE FROM history WHERE user_id = ?", (user_id,))
        return True

    # ---------------------------------------------
    # メモリ
    # ---------------------------------------------
    def get_memory(self, user_id: str) -> float:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM memory WHERE user_id = ?", (user_id,)).fetchone()
        return float(row[0]) if row else 0.0

    def set_memory(self, user_id: str, value: float) -> bool:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO memory (user_id, value) VALUES (?, ?)",
                (user_id, float(value)),
            )
        return True

    # ---------------------------------------------
    # 設定
    # ---------------------------------------------
    def get_settings(self, user_id: str) -> Optional[Settings]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT scientific_mode, angle_mode, dark_mode FROM settings WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        scientific_mode, angle_mode, dark_mode = row
        return Settings.from_record({
            "scientific_mode": scientific_mode,
            "angle_mode": angle_mode,
            "dark_mode": dark_mode,
        })

    def set_settings(self, user_id: str, settings: Settings) -> bool:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO settings (user_id, scientific_mode, angle_mode, dark_mode)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, int(settings.scientific_mode), settings.angle_unit, int(settings.dark_mode)),
            )
        return True


class _Transaction:
    """with 文を抜けるときに commit（例外時は rollback）して close する"""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def __enter__(self) -> sqlite3.Connection:
        return self.conn

    def __exit__(self, exc_type, exc, tb):
        try:
            with closing(self.conn):
                if exc_type is None:
                    self.conn.commit()
                else:
                    self.conn.rollback()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from (exc or e)
        if isinstance(exc, sqlite3.Error):
            raise PersistenceError(str(exc)) from exc
        return False
