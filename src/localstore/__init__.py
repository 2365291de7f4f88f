"""
Local Content Store
An in-process document store emulating a content backend's data API
Built for offline development and tests of content-driven applications

Features:
- Async document CRUD with generated ids and managed timestamps
- Sequential transactions publishing one event per applied mutation
- Query-shape interpreter for by-id, by-type and all-document queries
- Query-filtered real-time listeners
- Local asset ingestion with metadata documents
"""

from .errors import (
    LocalStoreError, DuplicateIdError, NotFoundError, TransactionStateError,
    AssetError, UnsupportedPayloadError, MetadataUnavailableError,
    StorageWriteError, MetadataPersistError, RemoteError
)
from .store import DocumentStore, Document
from .events import EventNotifier, EventKind, MutationEvent
from .transaction import Transaction, TransactionState, Mutation, MutationResult, OperationType
from .query import parse_query, ParsedQuery, QueryShape
from .assets import AssetManager, AssetMetadata, PathRef, ByteBuffer, NamedBlob, as_payload
from .filesystem import LocalFileSystem
from .config import ClientConfig, create_client_factory
from .client import LocalClient, Listener, Subscription
from .ws_client import DataAPIClient

__all__ = [
    'LocalClient',
    'Listener',
    'Subscription',
    'ClientConfig',
    'create_client_factory',
    'DocumentStore',
    'Document',
    'EventNotifier',
    'EventKind',
    'MutationEvent',
    'Transaction',
    'TransactionState',
    'Mutation',
    'MutationResult',
    'OperationType',
    'parse_query',
    'ParsedQuery',
    'QueryShape',
    'AssetManager',
    'AssetMetadata',
    'PathRef',
    'ByteBuffer',
    'NamedBlob',
    'as_payload',
    'LocalFileSystem',
    'DataAPIClient',
    'LocalStoreError',
    'DuplicateIdError',
    'NotFoundError',
    'TransactionStateError',
    'AssetError',
    'UnsupportedPayloadError',
    'MetadataUnavailableError',
    'StorageWriteError',
    'MetadataPersistError',
    'RemoteError',
]

__version__ = '1.0.0'
