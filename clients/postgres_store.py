"""
PostgreSQL-backed document store.

All ledger entities live in a single JSONB table keyed by (collection, id).
``seq`` records first insertion so listings come back in creation order even
after a document is replaced. Equality queries use JSONB containment, which
the GIN index on ``data`` serves directly.
"""

import logging
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.document_store import DocumentStore, to_json_value
from clients.postgres_client import PostgresClient

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    seq BIGSERIAL,
    collection TEXT NOT NULL,
    id UUID NOT NULL,
    data JSONB NOT NULL,
    PRIMARY KEY (collection, id)
);
CREATE INDEX IF NOT EXISTS documents_data_gin ON documents USING GIN (data jsonb_path_ops);
CREATE INDEX IF NOT EXISTS documents_collection_seq ON documents (collection, seq);
"""


class PostgresDocumentStore(DocumentStore):
    """
    DocumentStore over a PostgresClient.

    Named locks are transaction-scoped advisory locks, so they serialize
    across processes and are released by the commit or rollback that ends the
    enclosing transaction.
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def ensure_schema(self) -> None:
        """Create the documents table and indexes if missing."""
        self.postgres.execute(SCHEMA_SQL)
        logger.info("Document schema ensured")

    def get(self, collection: str, doc_id: UUID) -> dict[str, Any] | None:
        row = self.postgres.execute_single(
            "SELECT data FROM documents WHERE collection = %s AND id = %s",
            (collection, doc_id)
        )
        if row is None:
            return None
        return row["data"]

    def put(self, collection: str, doc_id: UUID, document: dict[str, Any]) -> None:
        self.postgres.execute(
            """
            INSERT INTO documents (collection, id, data)
            VALUES (%s, %s, %s)
            ON CONFLICT (collection, id) DO UPDATE SET data = EXCLUDED.data
            """,
            (collection, doc_id, Json(document))
        )

    def find(self, collection: str, **criteria: Any) -> list[dict[str, Any]]:
        if not criteria:
            rows = self.postgres.execute(
                "SELECT data FROM documents WHERE collection = %s ORDER BY seq ASC",
                (collection,)
            )
        else:
            wanted = {key: to_json_value(value) for key, value in criteria.items()}
            rows = self.postgres.execute(
                """
                SELECT data FROM documents
                WHERE collection = %s AND data @> %s::jsonb
                ORDER BY seq ASC
                """,
                (collection, Json(wanted))
            )
        return [row["data"] for row in rows]

    @contextmanager
    def transaction(self):
        with self.postgres.transaction():
            yield self

    @contextmanager
    def lock(self, key: str):
        with self.postgres.transaction():
            self.postgres.execute(
                "SELECT pg_advisory_xact_lock(hashtext(%s))",
                (key,)
            )
            yield
