"""
In-Memory Document Store
Keyed document collection owning identity, timestamps and raw CRUD semantics
"""

import logging
from collections import Counter
from typing import Any, Callable, Dict, List, Optional

from .errors import DuplicateIdError, NotFoundError
from .helpers import Clock, generate_document_id, utc_now_iso

logger = logging.getLogger('localstore.store')

Document = Dict[str, Any]
Predicate = Callable[[Document], bool]

ID_FIELD = '_id'
TYPE_FIELD = '_type'
CREATED_AT_FIELD = '_createdAt'
UPDATED_AT_FIELD = '_updatedAt'

RESERVED_FIELDS = frozenset({ID_FIELD, TYPE_FIELD, CREATED_AT_FIELD, UPDATED_AT_FIELD})
IMMUTABLE_FIELDS = frozenset({ID_FIELD, TYPE_FIELD, CREATED_AT_FIELD})


def with_timestamps(document: Document, now: str) -> Document:
    """Copy of ``document`` with missing or empty timestamps set to ``now``."""
    stamped = dict(document)
    stamped[CREATED_AT_FIELD] = document.get(CREATED_AT_FIELD) or now
    stamped[UPDATED_AT_FIELD] = document.get(UPDATED_AT_FIELD) or now
    return stamped


class DocumentStore:
    """
    Exclusive owner of the document collection.

    Every method is a coroutine, but none of them suspend: each operation
    completes before the next one starts. Documents are copied on the way in
    and out.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock: Clock = clock or utc_now_iso
        self._documents: Dict[str, Document] = {}

    def now(self) -> str:
        return self._clock()

    async def get(self, document_id: str) -> Optional[Document]:
        document = self._documents.get(document_id)
        return dict(document) if document is not None else None

    async def create(self, document: Document) -> Document:
        document_id = document.get(ID_FIELD) or generate_document_id()
        if document_id in self._documents:
            raise DuplicateIdError(document_id)

        stored = with_timestamps(document, self._clock())
        stored[ID_FIELD] = document_id
        self._documents[document_id] = stored

        logger.debug(f"Created document {document_id} ({stored.get(TYPE_FIELD)})")
        return dict(stored)

    async def update(self, document_id: str, fields: Document) -> Document:
        existing = self._documents.get(document_id)
        if existing is None:
            raise NotFoundError(document_id)

        updated = dict(existing)
        for key, value in fields.items():
            if key in IMMUTABLE_FIELDS:
                continue
            updated[key] = value
        updated[UPDATED_AT_FIELD] = self._clock()
        self._documents[document_id] = updated

        logger.debug(f"Updated document {document_id}: {sorted(fields)}")
        return dict(updated)

    async def delete(self, document_id: str) -> Optional[Document]:
        removed = self._documents.pop(document_id, None)
        if removed is not None:
            logger.debug(f"Deleted document {document_id}")
        return removed

    async def query(self, predicate: Predicate) -> List[Document]:
        copies = (dict(doc) for doc in self._documents.values())
        return [doc for doc in copies if predicate(doc)]

    async def clear(self):
        count = len(self._documents)
        self._documents.clear()
        logger.debug(f"Cleared {count} documents")

    def count(self) -> int:
        return len(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def type_counts(self) -> Dict[str, int]:
        return dict(Counter(
            str(doc.get(TYPE_FIELD)) for doc in self._documents.values()
        ))
