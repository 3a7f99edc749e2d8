"""Persistence of completed turns."""
import logging
import uuid
from datetime import datetime
from typing import List, Optional

import psycopg2
from psycopg2 import sql as pgsql
from psycopg2.extras import RealDictCursor

from config import sql
from config.env import CONVERSATIONS_COLLECTION
from models.domain import ConversationRecord

logger = logging.getLogger(__name__)


class ConversationStoreError(Exception):
    """A conversation record could not be persisted."""


class CollectionNotFoundError(ConversationStoreError):
    """The target collection does not exist."""


class ConversationStore:
    """Writes one record per completed turn into a named collection.

    The collection lookup and the insert share a transaction on a single
    pooled connection, so a failed save never leaves a partial record.
    """

    def __init__(self, collection: str = CONVERSATIONS_COLLECTION):
        self.collection = collection

    def _acquire(self):
        try:
            return sql.get_conn()
        except (psycopg2.Error, ValueError) as e:
            logger.error("Database unavailable: %s", e)
            raise ConversationStoreError("database unavailable") from e

    def save(self, user_id: Optional[str], input_text: str, response_text: str) -> ConversationRecord:
        conn = self._acquire()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                # Exact, case-sensitive match: the table is created with a quoted identifier.
                cur.execute(
                    "SELECT table_name AS found FROM information_schema.tables "
                    "WHERE table_schema = current_schema() AND table_name = %s",
                    (self.collection,),
                )
                row = cur.fetchone()
                if not row or row.get("found") is None:
                    raise CollectionNotFoundError(f"{self.collection} collection not found")

                now = datetime.utcnow()
                record = ConversationRecord(
                    id=uuid.uuid4().hex,
                    user_id=user_id,
                    user_input=input_text,
                    ai_response=response_text,
                    created_at=now,
                    updated_at=now,
                )
                cur.execute(
                    pgsql.SQL(
                        "INSERT INTO {table} (id, user_id, user_input, ai_response, created_at, updated_at) "
                        "VALUES (%s, %s, %s, %s, %s, %s)"
                    ).format(table=pgsql.Identifier(self.collection)),
                    (
                        record.id,
                        record.user_id,
                        record.user_input,
                        record.ai_response,
                        record.created_at,
                        record.updated_at,
                    ),
                )
            conn.commit()
            return record
        except CollectionNotFoundError:
            conn.rollback()
            logger.error("Failed to find %s collection", self.collection)
            raise
        except psycopg2.Error as e:
            conn.rollback()
            logger.error("Failed to save conversation: %s", e)
            raise ConversationStoreError("failed to save conversation") from e
        finally:
            sql.put_conn(conn)

    def list_for_user(self, user_id: str, limit: int = 50) -> List[ConversationRecord]:
        """Return the user's records, newest first."""
        conn = self._acquire()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    pgsql.SQL(
                        "SELECT id, user_id, user_input, ai_response, created_at, updated_at "
                        "FROM {table} WHERE user_id = %s "
                        "ORDER BY created_at DESC LIMIT %s"
                    ).format(table=pgsql.Identifier(self.collection)),
                    (user_id, limit),
                )
                return [ConversationRecord(**dict(r)) for r in cur.fetchall()]
        except psycopg2.Error as e:
            conn.rollback()
            logger.error("Failed to list conversations: %s", e)
            raise ConversationStoreError("failed to list conversations") from e
        finally:
            sql.put_conn(conn)
