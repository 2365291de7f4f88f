"""
Mutation Event Notifier
Single-channel publish/subscribe used to broadcast document mutations
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger('localstore.events')

MUTATION_CHANNEL = 'mutation'


class EventKind(Enum):
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'


@dataclass(frozen=True)
class MutationEvent:
    kind: EventKind
    document_id: str
    document: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'type': self.kind.value,
            'documentId': self.document_id
        }
        if self.document is not None:
            data['document'] = self.document
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MutationEvent':
        return cls(
            kind=EventKind(data['type']),
            document_id=data['documentId'],
            document=data.get('document')
        )


Listener = Callable[[MutationEvent], Any]


class EventNotifier:
    """
    Observer list for the ``mutation`` channel.

    Callbacks run synchronously, in registration order, inside ``emit``. A
    callback that raises is logged and skipped; the emitter never sees it.
    """

    def __init__(self):
        self._listeners: List[Listener] = []

    @property
    def channel(self) -> str:
        return MUTATION_CHANNEL

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)
        removed = False

        def unsubscribe():
            nonlocal removed
            if not removed:
                removed = True
                self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Listener):
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def emit(self, event: MutationEvent):
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    f"Error in {self.channel} listener for {event.kind.value} "
                    f"of {event.document_id}: {e}",
                    exc_info=True
                )
