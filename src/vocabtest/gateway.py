import json
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .database import get_db_connection
from .models import SessionUser, TestAnswer, TestSession, Word, WordList, WrongWordEntry

GLOBAL_SCOPE = "*"


def new_id() -> str:
    return str(uuid.uuid4())


def scope_key(word_list_id: Optional[str]) -> str:
    """Unique-key value for a wrong-word scope; ``None`` is the global pool."""
    return word_list_id if word_list_id is not None else GLOBAL_SCOPE


class PersistenceGateway(ABC):
    """Keyed CRUD over every entity the service stores."""

    # users and auth sessions
    @abstractmethod
    def create_user(self, username: str, password_hash: str, created_at: str) -> SessionUser:
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[SessionUser]:
        pass

    @abstractmethod
    def get_password_hash(self, username: str) -> Optional[tuple]:
        """Returns ``(SessionUser, password_hash)`` or ``None``."""

    @abstractmethod
    def create_auth_session(self, user_id: str, token_hash: str, expires_at: str) -> None:
        pass

    @abstractmethod
    def get_auth_session(self, token_hash: str) -> Optional[dict]:
        pass

    @abstractmethod
    def delete_auth_session(self, token_hash: str) -> None:
        pass

    # word lists
    @abstractmethod
    def create_word_list(self, word_list: WordList, entries: List[tuple]) -> List[Word]:
        pass

    @abstractmethod
    def get_word_list(self, list_id: str, owner_id: str) -> Optional[WordList]:
        pass

    @abstractmethod
    def list_word_lists(self, owner_id: str) -> List[WordList]:
        pass

    @abstractmethod
    def list_words(self, list_id: str) -> List[Word]:
        pass

    @abstractmethod
    def get_words(self, word_ids: List[str]) -> List[Word]:
        pass

    # test sessions
    @abstractmethod
    def insert_test_session(self, session: TestSession) -> None:
        pass

    @abstractmethod
    def get_test_session(self, session_id: str) -> Optional[TestSession]:
        pass

    @abstractmethod
    def active_sessions(self, user_id: str) -> List[TestSession]:
        """Active sessions of a user, most recently started first."""

    @abstractmethod
    def update_session_progress(self, session: TestSession) -> None:
        pass

    @abstractmethod
    def mark_finished(self, session_id: str, finished_at: str, accuracy: Optional[int]) -> None:
        pass

    @abstractmethod
    def finished_sessions(self, user_id: str, limit: int) -> List[TestSession]:
        pass

    # answers
    @abstractmethod
    def insert_test_answer(self, answer: TestAnswer) -> None:
        pass

    @abstractmethod
    def list_test_answers(self, session_id: str) -> List[TestAnswer]:
        pass

    # wrong words
    @abstractmethod
    def increment_wrong_word(
        self, user_id: str, word_id: str, word_list_id: Optional[str], at: str
    ) -> None:
        pass

    @abstractmethod
    def get_wrong_word(
        self, user_id: str, word_id: str, word_list_id: Optional[str]
    ) -> Optional[WrongWordEntry]:
        pass

    @abstractmethod
    def list_wrong_words(
        self, user_id: str, word_list_id: Optional[str] = None, global_only: bool = False
    ) -> List[WrongWordEntry]:
        pass

    @abstractmethod
    def wrong_word_pool(self, user_id: str, word_list_id: Optional[str]) -> List[Word]:
        """Words behind the user's wrong-word entries of one scope, in stored order."""


def _session_from_row(row: sqlite3.Row) -> TestSession:
    data = dict(row)
    for key in ("order_ids", "correct_ids", "incorrect_ids"):
        data[key] = json.loads(data[key])
    return TestSession(**data)


_WRONG_WORD_COLUMNS = (
    "ww.user_id, ww.word_id, ww.word_list_id, ww.wrong_count, ww.last_wrong_at, "
    "w.word, w.meaning"
)


class SQLiteGateway(PersistenceGateway):
    def __init__(self, db_path: str):
        self.db_path = db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = get_db_connection(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _fetchone(self, sql: str, params=()) -> Optional[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params=()) -> List[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchall()

    # --- users ---
    def create_user(self, username, password_hash, created_at):
        user = SessionUser(id=new_id(), username=username)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO users (id, username, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (user.id, username, password_hash, created_at),
            )
        return user

    def get_user(self, user_id):
        row = self._fetchone("SELECT id, username FROM users WHERE id = ?", (user_id,))
        return SessionUser(**dict(row)) if row else None

    def get_password_hash(self, username):
        row = self._fetchone(
            "SELECT id, username, password_hash FROM users WHERE username = ?", (username,)
        )
        if not row:
            return None
        return SessionUser(id=row["id"], username=row["username"]), row["password_hash"]

    def create_auth_session(self, user_id, token_hash, expires_at):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO auth_sessions (token_hash, user_id, expires_at) VALUES (?, ?, ?)",
                (token_hash, user_id, expires_at),
            )

    def get_auth_session(self, token_hash):
        row = self._fetchone(
            "SELECT token_hash, user_id, expires_at FROM auth_sessions WHERE token_hash = ?",
            (token_hash,),
        )
        return dict(row) if row else None

    def delete_auth_session(self, token_hash):
        with self._connect() as conn:
            conn.execute("DELETE FROM auth_sessions WHERE token_hash = ?", (token_hash,))

    # --- word lists ---
    def create_word_list(self, word_list, entries):
        words = [
            Word(id=new_id(), word_list_id=word_list.id, word=word, meaning=meaning)
            for word, meaning in entries
        ]
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO word_lists (id, owner_id, title, source_type, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    word_list.id,
                    word_list.owner_id,
                    word_list.title,
                    word_list.source_type,
                    word_list.created_at,
                ),
            )
            conn.executemany(
                "INSERT INTO words (id, word_list_id, word, meaning) VALUES (?, ?, ?, ?)",
                [(w.id, w.word_list_id, w.word, w.meaning) for w in words],
            )
        return words

    def get_word_list(self, list_id, owner_id):
        row = self._fetchone(
            "SELECT * FROM word_lists WHERE id = ? AND owner_id = ?", (list_id, owner_id)
        )
        return WordList(**dict(row)) if row else None

    def list_word_lists(self, owner_id):
        rows = self._fetchall(
            "SELECT * FROM word_lists WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        )
        return [WordList(**dict(r)) for r in rows]

    def list_words(self, list_id):
        rows = self._fetchall(
            "SELECT id, word_list_id, word, meaning FROM words "
            "WHERE word_list_id = ? ORDER BY rowid",
            (list_id,),
        )
        return [Word(**dict(r)) for r in rows]

    def get_words(self, word_ids):
        if not word_ids:
            return []
        placeholders = ", ".join("?" for _ in word_ids)
        rows = self._fetchall(
            f"SELECT id, word_list_id, word, meaning FROM words WHERE id IN ({placeholders})",
            tuple(word_ids),
        )
        return [Word(**dict(r)) for r in rows]

    # --- test sessions ---
    def insert_test_session(self, session):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO test_sessions (id, user_id, word_list_id, mode, status, order_ids, "
                "current_index, correct_ids, incorrect_ids, started_at, finished_at, accuracy) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.user_id,
                    session.word_list_id,
                    session.mode,
                    session.status,
                    json.dumps(session.order_ids),
                    session.current_index,
                    json.dumps(session.correct_ids),
                    json.dumps(session.incorrect_ids),
                    session.started_at,
                    session.finished_at,
                    session.accuracy,
                ),
            )

    def get_test_session(self, session_id):
        row = self._fetchone("SELECT * FROM test_sessions WHERE id = ?", (session_id,))
        return _session_from_row(row) if row else None

    def active_sessions(self, user_id):
        rows = self._fetchall(
            "SELECT * FROM test_sessions WHERE user_id = ? AND status = 'active' "
            "ORDER BY started_at DESC, rowid DESC",
            (user_id,),
        )
        return [_session_from_row(r) for r in rows]

    def update_session_progress(self, session):
        with self._connect() as conn:
            conn.execute(
                "UPDATE test_sessions SET current_index = ?, correct_ids = ?, incorrect_ids = ? "
                "WHERE id = ?",
                (
                    session.current_index,
                    json.dumps(session.correct_ids),
                    json.dumps(session.incorrect_ids),
                    session.id,
                ),
            )

    def mark_finished(self, session_id, finished_at, accuracy):
        # The status guard keeps the first finish authoritative.
        with self._connect() as conn:
            conn.execute(
                "UPDATE test_sessions SET status = 'finished', finished_at = ?, accuracy = ? "
                "WHERE id = ? AND status = 'active'",
                (finished_at, accuracy, session_id),
            )

    def finished_sessions(self, user_id, limit):
        rows = self._fetchall(
            "SELECT * FROM test_sessions WHERE user_id = ? AND status = 'finished' "
            "ORDER BY finished_at DESC, rowid DESC LIMIT ?",
            (user_id, limit),
        )
        return [_session_from_row(r) for r in rows]

    # --- answers ---
    def insert_test_answer(self, answer):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO test_answers (id, test_session_id, word_id, correct, answered_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    answer.id,
                    answer.test_session_id,
                    answer.word_id,
                    int(answer.correct),
                    answer.answered_at,
                ),
            )

    def list_test_answers(self, session_id):
        rows = self._fetchall(
            "SELECT * FROM test_answers WHERE test_session_id = ? ORDER BY rowid",
            (session_id,),
        )
        return [TestAnswer(**dict(r)) for r in rows]

    # --- wrong words ---
    def increment_wrong_word(self, user_id, word_id, word_list_id, at):
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO wrong_words "
                "(user_id, word_id, word_list_id, scope_key, wrong_count, last_wrong_at) "
                "VALUES (?, ?, ?, ?, 1, ?) "
                "ON CONFLICT (user_id, word_id, scope_key) DO UPDATE SET "
                "wrong_count = wrong_count + 1, last_wrong_at = excluded.last_wrong_at",
                (user_id, word_id, word_list_id, scope_key(word_list_id), at),
            )

    def get_wrong_word(self, user_id, word_id, word_list_id):
        row = self._fetchone(
            f"SELECT {_WRONG_WORD_COLUMNS} FROM wrong_words ww "
            "LEFT JOIN words w ON w.id = ww.word_id "
            "WHERE ww.user_id = ? AND ww.word_id = ? AND ww.scope_key = ?",
            (user_id, word_id, scope_key(word_list_id)),
        )
        return WrongWordEntry(**dict(row)) if row else None

    def list_wrong_words(self, user_id, word_list_id=None, global_only=False):
        sql = (
            f"SELECT {_WRONG_WORD_COLUMNS} FROM wrong_words ww "
            "LEFT JOIN words w ON w.id = ww.word_id WHERE ww.user_id = ?"
        )
        params = [user_id]
        if word_list_id is not None:
            sql += " AND ww.scope_key = ?"
            params.append(word_list_id)
        elif global_only:
            sql += " AND ww.scope_key = ?"
            params.append(GLOBAL_SCOPE)
        sql += " ORDER BY ww.wrong_count DESC, ww.last_wrong_at DESC"
        return [WrongWordEntry(**dict(r)) for r in self._fetchall(sql, tuple(params))]

    def wrong_word_pool(self, user_id, word_list_id):
        rows = self._fetchall(
            "SELECT w.id, w.word_list_id, w.word, w.meaning FROM wrong_words ww "
            "JOIN words w ON w.id = ww.word_id "
            "WHERE ww.user_id = ? AND ww.scope_key = ? ORDER BY ww.rowid",
            (user_id, scope_key(word_list_id)),
        )
        return [Word(**dict(r)) for r in rows]
