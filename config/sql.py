"""Database configuration and connection."""
import os
import uuid
from typing import List, Dict, Optional
from datetime import datetime
from urllib.parse import unquote

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from .env import CONVERSATIONS_COLLECTION


USERS_TABLE = "chat_users"
TOKENS_TABLE = "auth_tokens"

_pool: Optional[ThreadedConnectionPool] = None


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("Missing environment variable: DATABASE_URL")
    return unquote(url)


def _get_pool() -> ThreadedConnectionPool:
    global _pool
    if _pool is None:
        _pool = ThreadedConnectionPool(
            minconn=1,
            maxconn=int(os.getenv("DB_POOL_MAX", "5")),
            dsn=_database_url(),
        )
    return _pool


def get_conn():
    pool = _get_pool()
    return pool.getconn()


def put_conn(conn):
    pool = _get_pool()
    pool.putconn(conn)


def check_connection() -> Dict:
    """Return the current database user and name."""
    conn = psycopg2.connect(_database_url())
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT current_user, current_database();")
            user, dbname = cur.fetchone()
        return {"current_user": user, "database": dbname}
    finally:
        conn.close()


def init_db(collection: str = CONVERSATIONS_COLLECTION) -> None:
    """Initialize database tables."""
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {USERS_TABLE} (
                    id TEXT PRIMARY KEY,
                    username TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL
                );
                """
            )
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {TOKENS_TABLE} (
                    token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES {USERS_TABLE}(id) ON DELETE CASCADE,
                    created_at TIMESTAMPTZ NOT NULL,
                    last_seen TIMESTAMPTZ NOT NULL
                );
                """
            )
            cur.execute(
                sql.SQL(
                    """
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        user_id TEXT REFERENCES {users}(id) ON DELETE SET NULL,
                        user_input TEXT NOT NULL,
                        ai_response TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL,
                        updated_at TIMESTAMPTZ NOT NULL
                    );
                    """
                ).format(table=sql.Identifier(collection), users=sql.Identifier(USERS_TABLE))
            )
            cur.execute(
                sql.SQL("CREATE INDEX IF NOT EXISTS {index} ON {table}(user_id, created_at);").format(
                    index=sql.Identifier(f"idx_{collection}_user_id"),
                    table=sql.Identifier(collection),
                )
            )
            cur.execute(
                f"""
                CREATE INDEX IF NOT EXISTS idx_{TOKENS_TABLE}_user_id
                ON {TOKENS_TABLE}(user_id);
                """
            )
            conn.commit()
    finally:
        put_conn(conn)


def create_user(username: str, password_hash: str) -> str:
    """Create a new user."""
    user_id = uuid.uuid4().hex
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            now = datetime.utcnow()
            cur.execute(
                f"INSERT INTO {USERS_TABLE} (id, username, password_hash, created_at) "
                f"VALUES (%s, %s, %s, %s)",
                (user_id, username, password_hash, now),
            )
            conn.commit()
    finally:
        put_conn(conn)
    return user_id


def get_user_by_username(username: str) -> Optional[Dict]:
    """Fetch user by username."""
    conn = get_conn()
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"SELECT id, username, password_hash, created_at "
                f"FROM {USERS_TABLE} WHERE username = %s",
                (username,),
            )
            row = cur.fetchone()
            return dict(row) if row else None
    finally:
        put_conn(conn)


def create_auth_token(user_id: str) -> str:
    """Create a new auth token for a user."""
    token = uuid.uuid4().hex
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            now = datetime.utcnow()
            cur.execute(
                f"INSERT INTO {TOKENS_TABLE} (token, user_id, created_at, last_seen) "
                f"VALUES (%s, %s, %s, %s)",
                (token, user_id, now, now),
            )
            conn.commit()
    finally:
        put_conn(conn)
    return token


def revoke_auth_token(token: str) -> None:
    """Revoke an auth token."""
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            cur.execute(f"DELETE FROM {TOKENS_TABLE} WHERE token = %s", (token,))
            conn.commit()
    finally:
        put_conn(conn)


def get_user_by_token(token: str) -> Optional[Dict]:
    """Fetch user by auth token."""
    conn = get_conn()
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                f"SELECT u.id, u.username "
                f"FROM {TOKENS_TABLE} t "
                f"JOIN {USERS_TABLE} u ON u.id = t.user_id "
                f"WHERE t.token = %s",
                (token,),
            )
            row = cur.fetchone()
            if not row:
                return None
            cur.execute(
                f"UPDATE {TOKENS_TABLE} SET last_seen = %s WHERE token = %s",
                (datetime.utcnow(), token),
            )
            conn.commit()
            return dict(row)
    finally:
        put_conn(conn)
