"""
Transactions for the Local Content Store
Ordered batches of create/patch/delete mutations applied in sequence
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import TransactionStateError
from .events import EventKind, EventNotifier, MutationEvent
from .store import Document, DocumentStore, ID_FIELD, RESERVED_FIELDS, with_timestamps

default_logger = logging.getLogger('localstore.transaction')


class TransactionState(Enum):
    ACTIVE = 1
    COMMITTED = 2


class OperationType(Enum):
    CREATE = 'create'
    PATCH = 'patch'
    DELETE = 'delete'


@dataclass(frozen=True)
class Mutation:
    op_type: OperationType
    document_id: str
    document: Optional[Document] = None
    fields: Optional[Document] = None

    @classmethod
    def create(cls, document: Document) -> 'Mutation':
        return cls(OperationType.CREATE, document.get(ID_FIELD, ''), document=dict(document))

    @classmethod
    def patch(cls, document_id: str, fields: Document) -> 'Mutation':
        return cls(OperationType.PATCH, document_id, fields=dict(fields))

    @classmethod
    def delete(cls, document_id: str) -> 'Mutation':
        return cls(OperationType.DELETE, document_id)

    def to_dict(self) -> Dict[str, Any]:
        if self.op_type == OperationType.CREATE:
            return {'create': {'document': self.document}}
        if self.op_type == OperationType.PATCH:
            return {'patch': {'id': self.document_id, 'fields': self.fields}}
        return {'delete': {'id': self.document_id}}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Mutation':
        if 'create' in data:
            return cls.create(data['create']['document'])
        if 'patch' in data:
            return cls.patch(data['patch']['id'], data['patch'].get('fields') or {})
        if 'delete' in data:
            return cls.delete(data['delete']['id'])
        raise ValueError(f"Unrecognised mutation: {sorted(data)}")


@dataclass(frozen=True)
class MutationResult:
    id: str
    operation: OperationType
    document: Optional[Document] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'id': self.id, 'operation': self.operation.value}
        if self.document is not None:
            data['document'] = self.document
        return data


def strip_reserved(fields: Document) -> Tuple[Document, List[str]]:
    kept = {k: v for k, v in fields.items() if k not in RESERVED_FIELDS}
    dropped = sorted(k for k in fields if k in RESERVED_FIELDS)
    return kept, dropped


@dataclass
class Transaction:
    """
    Pending mutations against one store, published through one notifier.

    ``commit`` applies the mutations strictly in order and emits each event as
    soon as its step succeeds, so listeners can observe a partially applied
    batch. The first failing step aborts the commit: earlier steps stay applied
    and the pending list is kept.
    """

    store: DocumentStore
    notifier: EventNotifier
    logger: logging.Logger = default_logger
    state: TransactionState = TransactionState.ACTIVE
    _mutations: List[Mutation] = field(default_factory=list)

    @property
    def mutations(self) -> Sequence[Mutation]:
        return tuple(self._mutations)

    def __len__(self) -> int:
        return len(self._mutations)

    def is_active(self) -> bool:
        return self.state == TransactionState.ACTIVE

    def _ensure_active(self):
        if not self.is_active():
            raise TransactionStateError(f"Cannot add mutation to {self.state.name} transaction")

    def add_mutation(self, mutation: Mutation) -> 'Transaction':
        self._ensure_active()
        self._mutations.append(mutation)
        return self

    def create(self, document: Document) -> 'Transaction':
        return self.add_mutation(Mutation.create(with_timestamps(document, self.store.now())))

    def patch(self, document_id: str, fields: Document) -> 'Transaction':
        self._ensure_active()
        patchable, dropped = strip_reserved(fields)
        if dropped:
            self.logger.debug(f"Ignoring reserved fields {dropped} in patch for {document_id}")
        if not patchable:
            self.logger.warning(
                f'Patch for document ID "{document_id}" is empty or only contains '
                f'reserved fields; no operation recorded'
            )
            return self
        return self.add_mutation(Mutation.patch(document_id, patchable))

    def delete(self, document_id: str) -> 'Transaction':
        return self.add_mutation(Mutation.delete(document_id))

    def extend(self, mutations: Sequence[Mutation]) -> 'Transaction':
        for mutation in mutations:
            if mutation.op_type == OperationType.CREATE:
                self.create(mutation.document or {})
            elif mutation.op_type == OperationType.PATCH:
                self.patch(mutation.document_id, mutation.fields or {})
            else:
                self.delete(mutation.document_id)
        return self

    async def commit(self) -> List[MutationResult]:
        if not self.is_active():
            raise TransactionStateError(f"Cannot commit {self.state.name} transaction")

        results: List[MutationResult] = []
        try:
            for mutation in self._mutations:
                result, event = await self._apply(mutation)
                results.append(result)
                self.notifier.emit(event)
        except Exception as e:
            self.logger.error(
                f"Transaction commit failed after {len(results)} of "
                f"{len(self._mutations)} mutations: {e}"
            )
            raise

        self._mutations.clear()
        self.state = TransactionState.COMMITTED
        self.logger.debug(f"Committed transaction with {len(results)} mutations")
        return results

    async def _apply(self, mutation: Mutation) -> Tuple[MutationResult, MutationEvent]:
        if mutation.op_type == OperationType.CREATE:
            created = await self.store.create(mutation.document or {})
            document_id = created[ID_FIELD]
            return (
                MutationResult(document_id, OperationType.CREATE, created),
                MutationEvent(EventKind.CREATE, document_id, created)
            )

        if mutation.op_type == OperationType.PATCH:
            patched = await self.store.update(mutation.document_id, mutation.fields or {})
            return (
                MutationResult(mutation.document_id, OperationType.PATCH, patched),
                MutationEvent(EventKind.UPDATE, mutation.document_id, patched)
            )

        await self.store.delete(mutation.document_id)
        return (
            MutationResult(mutation.document_id, OperationType.DELETE),
            MutationEvent(EventKind.DELETE, mutation.document_id)
        )
