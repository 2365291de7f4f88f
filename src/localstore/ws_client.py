"""
WebSocket Data API Client
Client for communicating with the Data API via WebSocket
"""

import asyncio
import base64
import inspect
import json
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

import websockets
from websockets.asyncio.client import ClientConnection

from .errors import RemoteError
from .events import MutationEvent
from .store import Document
from .transaction import Mutation

logger = logging.getLogger('localstore.ws_client')

EventCallback = Callable[[MutationEvent], Any]


class DataAPIClient:
    def __init__(self, uri: str = "ws://127.0.0.1:8080"):
        self.uri = uri

        self._ws: Optional[ClientConnection] = None
        self._connected = False
        self._pending_requests: Dict[str, asyncio.Future[Dict[str, Any]]] = {}
        self._receive_task: Optional[asyncio.Task[None]] = None
        self._dispatch_task: Optional[asyncio.Task[None]] = None
        self._events: Optional[asyncio.Queue[Dict[str, Any]]] = None
        self._listeners: Dict[str, EventCallback] = {}

    @property
    def is_connected(self) -> bool:
        return self._connected and self._ws is not None

    async def connect(self) -> bool:
        if self._connected:
            return True

        try:
            self._ws = await websockets.connect(
                self.uri,
                ping_interval=30,
                ping_timeout=10,
                max_size=10 * 1024 * 1024
            )
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"Failed to connect to Data API: {e}")
            self._connected = False
            return False

        self._connected = True
        if self._dispatch_task is None:
            self._events = asyncio.Queue()
            self._dispatch_task = asyncio.create_task(self._dispatch_loop())
        self._receive_task = asyncio.create_task(self._receive_loop())

        logger.info(f"Connected to Data API at {self.uri}")
        return True

    async def disconnect(self):
        self._connected = False

        for task in (self._receive_task, self._dispatch_task):
            if task is None or task is asyncio.current_task():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._receive_task = None
        self._dispatch_task = None
        self._events = None

        if self._ws:
            await self._ws.close()
            self._ws = None

        self._fail_pending(ConnectionError("Disconnected"))
        self._listeners.clear()

        logger.info("Disconnected from Data API")

    def _fail_pending(self, error: Exception):
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(error)
        self._pending_requests.clear()

    async def _receive_loop(self) -> None:
        if self._ws is None:
            return

        try:
            async for message in self._ws:
                try:
                    if isinstance(message, bytes):
                        message = message.decode('utf-8')
                    response = json.loads(message)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    logger.warning("Received invalid JSON from server")
                    continue

                if 'event' in response:
                    if self._events is not None:
                        self._events.put_nowait(response)
                    continue

                request_id = response.get('request_id')
                if request_id and request_id in self._pending_requests:
                    future = self._pending_requests.pop(request_id)
                    if not future.done():
                        future.set_result(response)
                else:
                    logger.warning(f"Received response for unknown request {request_id}")

        except websockets.exceptions.ConnectionClosed:
            logger.warning("Connection to Data API closed")
        finally:
            self._connected = False
            self._fail_pending(ConnectionError("Connection to Data API closed"))

    async def _dispatch_loop(self) -> None:
        # Callbacks run here so the receive loop keeps resolving replies
        events = self._events
        if events is None:
            return

        while self._events is events:
            message = await events.get()
            await self._dispatch(message)

    async def _dispatch(self, message: Dict[str, Any]):
        callback = self._listeners.get(message.get('subscription_id'))
        if callback is None:
            return

        try:
            event = MutationEvent.from_dict(message['payload'])
            result = callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error in listen callback: {e}", exc_info=True)

    async def request(
        self,
        action: str,
        data: Optional[Dict[str, Any]] = None,
        timeout: float = 30.0
    ) -> Dict[str, Any]:
        if not self.is_connected:
            await self.connect()
            if not self.is_connected:
                raise ConnectionError("Not connected to Data API")

        if self._ws is None:
            raise ConnectionError("WebSocket connection is not available")

        request_id = str(uuid.uuid4())
        request_payload = {
            'action': action,
            'data': data or {},
            'request_id': request_id
        }

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Dict[str, Any]] = loop.create_future()
        self._pending_requests[request_id] = future

        try:
            await self._ws.send(json.dumps(request_payload, default=str))
            response = await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending_requests.pop(request_id, None)
            raise TimeoutError(f"Request timed out after {timeout}s")
        except Exception:
            self._pending_requests.pop(request_id, None)
            raise

        if not response.get('success', False):
            raise RemoteError(response.get('error', 'Unknown error'), response.get('error_type'))

        return response

    async def ping(self) -> bool:
        try:
            response = await self.request('ping', timeout=5.0)
        except (ConnectionError, TimeoutError, RemoteError):
            return False
        return response.get('pong', False)

    async def fetch(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self.request('fetch', {'query': query, 'params': params})
        return response.get('result')

    async def get_document(self, document_id: str) -> Optional[Document]:
        response = await self.request('get', {'id': document_id})
        return response.get('document')

    async def create(self, document: Document) -> Document:
        response = await self.request('create', {'document': document})
        return response['document']

    async def patch(self, document_id: str, fields: Document) -> List[Dict[str, Any]]:
        response = await self.request('patch', {'id': document_id, 'fields': fields})
        return response.get('results', [])

    async def delete(self, document_id: str) -> Dict[str, Any]:
        response = await self.request('delete', {'id': document_id})
        return {'results': response.get('results', [])}

    async def mutate(self, mutations: Sequence[Mutation]) -> List[Dict[str, Any]]:
        response = await self.request('mutate', {
            'mutations': [m.to_dict() for m in mutations]
        })
        return response.get('results', [])

    async def upload(
        self,
        kind: str,
        data: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> Document:
        response = await self.request('upload', {
            'kind': kind,
            'data': base64.b64encode(data).decode('ascii'),
            'filename': filename,
            'content_type': content_type
        })
        return response['asset']

    async def listen(
        self,
        query: str,
        callback: EventCallback,
        params: Optional[Dict[str, Any]] = None
    ) -> str:
        subscription_id = uuid.uuid4().hex
        self._listeners[subscription_id] = callback
        try:
            await self.request('listen', {
                'query': query,
                'params': params,
                'subscription_id': subscription_id
            })
        except Exception:
            self._listeners.pop(subscription_id, None)
            raise
        return subscription_id

    async def unlisten(self, subscription_id: str) -> bool:
        self._listeners.pop(subscription_id, None)
        response = await self.request('unlisten', {'subscription_id': subscription_id})
        return response.get('removed', False)

    async def stats(self) -> Dict[str, Any]:
        response = await self.request('stats')
        return response.get('stats', {})
