"""
Local Content Store Client
Single object surface for documents, transactions, listeners and assets
"""

import itertools
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from .assets import AssetManager
from .config import ClientConfig
from .events import EventKind, EventNotifier, MutationEvent
from .filesystem import LocalFileSystem
from .helpers import Clock
from .query import ParsedQuery, Params, parse_query
from .store import Document, DocumentStore, ID_FIELD, with_timestamps
from .transaction import Transaction

Observer = Callable[[MutationEvent], Any]
FetchResult = Union[Optional[Document], List[Document]]

_client_ids = itertools.count(1)


class Subscription:
    def __init__(self, dispose: Callable[[], None]):
        self._dispose = dispose
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self):
        if self._closed:
            return
        self._closed = True
        self._dispose()


class Listener:
    """
    Query-bound handle returned by ``LocalClient.listen``.

    Each ``subscribe`` registers an independent filtered callback on the
    client's notifier.
    """

    def __init__(
        self,
        notifier: EventNotifier,
        query: ParsedQuery,
        params: Params,
        logger: logging.Logger
    ):
        self.notifier = notifier
        self.query = query
        self.params = params
        self.logger = logger

    def subscribe(self, observer: Observer) -> Subscription:
        event_filter = self.query.event_filter(self.params)
        if event_filter is None:
            self.logger.warning(
                f"{self.query.unmatched_reason(self.params)}; listener will receive no events"
            )
            return Subscription(lambda: None)

        def forward(event: MutationEvent):
            if event_filter(event):
                observer(event)

        self.logger.debug(f'Subscribed to "{self.query.text}"')
        return Subscription(self.notifier.subscribe(forward))


class LocalClient:
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        store: Optional[DocumentStore] = None,
        notifier: Optional[EventNotifier] = None,
        filesystem: Optional[LocalFileSystem] = None,
        clock: Optional[Clock] = None
    ):
        self.config = config or ClientConfig()
        self.store = store or DocumentStore(clock=clock)
        self.notifier = notifier or EventNotifier()

        # One logger per client, below the module loggers' namespace
        self.logger = logging.getLogger(
            f'localstore.client.{self.config.dataset}.{next(_client_ids)}'
        )
        self.logger.setLevel(self.config.logging_level)

        self.assets = AssetManager(
            self.config.resolved_assets_directory,
            self.create,
            filesystem=filesystem,
            logger=self.logger
        )

        self.logger.debug(f"Local client initialized with config: {self.config}")

    @property
    def dataset(self) -> str:
        return self.config.dataset

    async def fetch(self, query: str, params: Params = None) -> FetchResult:
        self.logger.debug(f'Fetching query: "{query}" with params: {params}')

        parsed = parse_query(query)
        if parsed.is_single:
            return await self.store.get(parsed.value)

        predicate = parsed.predicate(params)
        if predicate is None:
            self.logger.warning(parsed.unmatched_reason(params))
            return []
        return await self.store.query(predicate)

    async def get_document(self, document_id: str) -> Optional[Document]:
        return await self.store.get(document_id)

    async def create(self, document: Document) -> Document:
        created = await self.store.create(with_timestamps(document, self.store.now()))
        self.notifier.emit(MutationEvent(EventKind.CREATE, created[ID_FIELD], created))
        return created

    def patch(self, document_id: str, fields: Document) -> Transaction:
        return self.transaction().patch(document_id, fields)

    async def delete(self, document_id: str) -> Dict[str, List[Dict[str, str]]]:
        removed = await self.store.delete(document_id)
        if removed is not None:
            self.notifier.emit(MutationEvent(EventKind.DELETE, document_id))
        else:
            self.logger.debug(f"Delete of missing document {document_id} ignored")
        return {'results': [{'id': document_id}]}

    def transaction(self) -> Transaction:
        return Transaction(self.store, self.notifier, logger=self.logger)

    def listen(self, query: str, params: Params = None) -> Listener:
        return Listener(self.notifier, parse_query(query), params, self.logger)

    def stats(self) -> Dict[str, Any]:
        return {
            'dataset': self.dataset,
            'documents': self.store.count(),
            'types': self.store.type_counts(),
            'listeners': self.notifier.listener_count
        }
