"""Lightweight database helpers for favorites and the search audit log."""
from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from urllib.parse import unquote, urlparse


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Favorite:
    id: int
    city: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    created_at: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ToggleResult:
    city: str
    added: bool = False
    removed: bool = False
    favorite: Optional[Favorite] = None

    def as_dict(self) -> Dict[str, Any]:
        if self.removed:
            return {"removed": True, "city": self.city}
        return {"added": True, "row": self.favorite.as_dict() if self.favorite else None}


class DatabaseSession:
    """Minimal DB-API session wrapper with context aware placeholders."""

    def __init__(self, connection, placeholder: str):
        self.connection = connection
        self.placeholder = placeholder

    def _prepare_sql(self, sql: str) -> str:
        if self.placeholder == "?":
            return sql
        return sql.replace("?", self.placeholder)

    def execute(self, sql: str, params: tuple = ()):
        cursor = self.connection.cursor()
        cursor.execute(self._prepare_sql(sql), params)
        return cursor

    def fetchone(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        cursor.close()
        return row

    def fetchall(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        rows = cursor.fetchall()
        cursor.close()
        return rows

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        self.connection.close()


class SessionFactory:
    def __init__(self, url: str, placeholder: str, driver: str):
        self.url = url
        self.placeholder = placeholder
        self.driver = driver

    @property
    def integrity_errors(self) -> Tuple[type, ...]:
        if self.driver == "mysql":
            import pymysql

            return (pymysql.err.IntegrityError,)
        return (sqlite3.IntegrityError,)

    @property
    def database_errors(self) -> Tuple[type, ...]:
        if self.driver == "mysql":
            import pymysql

            return (pymysql.err.Error,)
        return (sqlite3.Error,)

    def __call__(self) -> DatabaseSession:
        connection = create_connection(self.url, self.driver)
        return DatabaseSession(connection, self.placeholder)


_engine_lock = threading.Lock()
_database_url: Optional[str] = None
_session_factory: Optional[SessionFactory] = None


# ---------------------------------------------------------------------------

def _default_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./weather.db")


def configure_engine(url: Optional[str] = None, **_: Any) -> str:
    """Configure database access using the provided URL and create the schema."""

    global _database_url, _session_factory
    with _engine_lock:
        _database_url = url or _default_database_url()
        driver, placeholder = detect_driver(_database_url)
        _session_factory = SessionFactory(_database_url, placeholder, driver)
    run_migrations()
    return _database_url


def detect_driver(url: str) -> tuple[str, str]:
    parsed = urlparse(url)
    if parsed.scheme.startswith("mysql"):
        return "mysql", "%s"
    if parsed.scheme.startswith("sqlite") or parsed.scheme == "":
        return "sqlite", "?"
    raise ValueError(f"Unsupported database scheme: {parsed.scheme}")


def create_connection(url: str, driver: str):
    parsed = urlparse(url)
    if driver == "sqlite":
        path = unquote(parsed.path or parsed.netloc or ":memory:")
        if path.startswith("/"):
            db_path = path
        else:
            db_path = os.path.abspath(path)
        connection = sqlite3.connect(db_path, timeout=10, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        return connection

    if driver == "mysql":
        import pymysql
        from pymysql.cursors import DictCursor

        params = {
            "host": parsed.hostname or "localhost",
            "user": parsed.username,
            "password": parsed.password,
            "database": parsed.path.lstrip("/") or None,
            "port": parsed.port or 3306,
            "cursorclass": DictCursor,
            "autocommit": False,
            "charset": "utf8mb4",
        }
        return pymysql.connect(**params)

    raise ValueError(f"Unsupported driver: {driver}")


def is_configured() -> bool:
    return _session_factory is not None


def get_session_factory() -> SessionFactory:
    if _session_factory is None:
        configure_engine()
    assert _session_factory is not None
    return _session_factory


@contextmanager
def session_scope(session_factory: Optional[SessionFactory] = None):
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------

def run_migrations() -> None:
    factory = get_session_factory()
    primary_key = (
        "INTEGER PRIMARY KEY AUTO_INCREMENT" if factory.driver == "mysql" else "INTEGER PRIMARY KEY AUTOINCREMENT"
    )
    session = factory()
    try:
        session.execute(
            f"""
            CREATE TABLE IF NOT EXISTS favorites (
                id {primary_key},
                city VARCHAR(255) NOT NULL UNIQUE,
                lat REAL,
                lon REAL,
                created_at VARCHAR(40) NOT NULL
            )
            """
        )
        session.execute(
            f"""
            CREATE TABLE IF NOT EXISTS searches (
                id {primary_key},
                city VARCHAR(255),
                place VARCHAR(255),
                lat REAL,
                lon REAL,
                created_at VARCHAR(40) NOT NULL
            )
            """
        )
        session.commit()
    finally:
        session.close()


# ---------------------------------------------------------------------------

def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _favorite_from_row(row) -> Favorite:
    return Favorite(
        id=row["id"],
        city=row["city"],
        lat=row["lat"],
        lon=row["lon"],
        created_at=row["created_at"],
    )


def _retry_on_conflict(
    work: Callable[[DatabaseSession], T],
    session_factory: Optional[SessionFactory] = None,
    attempts: int = 3,
) -> T:
    """Run ``work`` in its own transaction, retrying when a unique key races."""

    factory = session_factory or get_session_factory()
    for attempt in range(1, attempts + 1):
        try:
            with session_scope(factory) as session:
                return work(session)
        except factory.integrity_errors:
            if attempt == attempts:
                raise
            logger.info("Favorites write conflicted, retrying (%s/%s)", attempt, attempts)
    raise AssertionError("unreachable")


def _insert_favorite(session: DatabaseSession, city: str, lat: Optional[float], lon: Optional[float]) -> Favorite:
    now = utcnow_iso()
    cursor = session.execute(
        "INSERT INTO favorites (city, lat, lon, created_at) VALUES (?, ?, ?, ?)",
        (city, lat, lon, now),
    )
    return Favorite(id=cursor.lastrowid, city=city, lat=lat, lon=lon, created_at=now)


def list_favorites(session: DatabaseSession) -> List[Favorite]:
    rows = session.fetchall("SELECT * FROM favorites ORDER BY created_at DESC, id DESC")
    return [_favorite_from_row(row) for row in rows]


def search_favorites(session: DatabaseSession, text: str) -> List[Favorite]:
    rows = session.fetchall(
        "SELECT * FROM favorites WHERE city LIKE ? ORDER BY created_at DESC, id DESC",
        (f"%{text.strip()}%",),
    )
    return [_favorite_from_row(row) for row in rows]


def get_favorite(session: DatabaseSession, favorite_id: int) -> Optional[Favorite]:
    row = session.fetchone("SELECT * FROM favorites WHERE id = ?", (favorite_id,))
    return _favorite_from_row(row) if row else None


def delete_favorite(session: DatabaseSession, favorite_id: int) -> bool:
    cursor = session.execute("DELETE FROM favorites WHERE id = ?", (favorite_id,))
    return cursor.rowcount > 0


def add_favorite(
    city: str,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
) -> Favorite:
    """Insert ``city`` unless it is already a favorite; return the stored row."""

    def work(session: DatabaseSession) -> Favorite:
        row = session.fetchone("SELECT * FROM favorites WHERE city = ?", (city,))
        if row:
            return _favorite_from_row(row)
        return _insert_favorite(session, city, lat, lon)

    return _retry_on_conflict(work, session_factory)


def toggle_favorite(
    city: str,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
) -> ToggleResult:
    """Remove ``city`` when it is a favorite, add it otherwise.

    The delete-then-insert pair runs in one transaction; the unique constraint
    on ``city`` turns a concurrent insert into a retry, which then sees the
    other toggle's row and removes it.
    """

    def work(session: DatabaseSession) -> ToggleResult:
        cursor = session.execute("DELETE FROM favorites WHERE city = ?", (city,))
        if cursor.rowcount > 0:
            return ToggleResult(city=city, removed=True)
        return ToggleResult(city=city, added=True, favorite=_insert_favorite(session, city, lat, lon))

    return _retry_on_conflict(work, session_factory)


def record_search(
    session: DatabaseSession,
    *,
    city: Optional[str],
    place: str,
    lat: Optional[float],
    lon: Optional[float],
) -> None:
    session.execute(
        "INSERT INTO searches (city, place, lat, lon, created_at) VALUES (?, ?, ?, ?, ?)",
        (city, place, lat, lon, utcnow_iso()),
    )


def count_searches(session: DatabaseSession) -> int:
    row = session.fetchone("SELECT COUNT(*) AS cnt FROM searches")
    if isinstance(row, dict):
        return int(row["cnt"])
    return int(row[0])
