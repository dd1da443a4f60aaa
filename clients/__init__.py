# Storage clients
from clients.document_store import DocumentStore, MemoryDocumentStore
from clients.postgres_client import PostgresClient, get_database_url
from clients.postgres_store import PostgresDocumentStore
