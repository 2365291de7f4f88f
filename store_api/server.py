"""
WebSocket Data API Server
Exposes a local content store client to out-of-process callers

Supports:
- Document fetch, create, patch and delete
- Batched mutations committed as one transaction
- Query-filtered listeners with pushed mutation events
- Base64 asset uploads and process statistics
"""

import asyncio
import base64
import json
import logging
import os
import uuid
from datetime import datetime
from http import HTTPStatus
from typing import Any, Dict, Optional, Set, Tuple

import psutil
import websockets
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from localstore import (
    ByteBuffer,
    ClientConfig,
    LocalClient,
    LocalStoreError,
    Mutation,
    MutationEvent,
    Subscription,
)

logger = logging.getLogger('store_api')

Outbox = asyncio.Queue


class DataAPIServer:
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        config: Optional[ClientConfig] = None,
        client: Optional[LocalClient] = None
    ):
        self.host = host
        self._requested_port = port
        self.client = client or LocalClient(config)
        self.clients: Set[ServerConnection] = set()
        self._outboxes: Dict[Any, Outbox] = {}
        self._subscriptions: Dict[str, Tuple[Any, Subscription]] = {}
        self._lock = asyncio.Lock()
        self._server: Optional[Server] = None
        self._process = psutil.Process(os.getpid())

    @property
    def port(self) -> int:
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._requested_port

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def register_connection(self, connection: Any) -> Outbox:
        """Create the outgoing message queue for ``connection``."""
        outbox: Outbox = asyncio.Queue()
        self._outboxes[connection] = outbox
        return outbox

    def unregister_connection(self, connection: Any):
        self._outboxes.pop(connection, None)
        owned = [sid for sid, (owner, _) in self._subscriptions.items() if owner is connection]
        for sid in owned:
            _, subscription = self._subscriptions.pop(sid)
            subscription.unsubscribe()
        if owned:
            logger.info(f"Removed {len(owned)} subscriptions for closed connection {id(connection)}")

    def _require(self, data: Dict[str, Any], key: str) -> Any:
        value = data.get(key)
        if value is None:
            raise ValueError(f"Missing required field: {key}")
        return value

    def _stats(self) -> Dict[str, Any]:
        memory = self._process.memory_info()
        return {
            **self.client.stats(),
            'connections': len(self.clients),
            'subscriptions': len(self._subscriptions),
            'memory_mb': memory.rss / 1024 / 1024,
            'cpu_percent': self._process.cpu_percent(),
            'timestamp': datetime.now().isoformat()
        }

    def _listen(self, data: Dict[str, Any], connection: Any) -> Dict[str, Any]:
        outbox = self._outboxes.get(connection)
        if outbox is None:
            raise ValueError('Listening requires an open connection')

        subscription_id = data.get('subscription_id') or uuid.uuid4().hex
        if subscription_id in self._subscriptions:
            raise ValueError(f"Subscription {subscription_id} already exists")

        def forward(event: MutationEvent):
            outbox.put_nowait({
                'event': 'mutation',
                'subscription_id': subscription_id,
                'payload': event.to_dict()
            })

        listener = self.client.listen(self._require(data, 'query'), data.get('params'))
        self._subscriptions[subscription_id] = (connection, listener.subscribe(forward))
        return {'subscription_id': subscription_id}

    def _unlisten(self, data: Dict[str, Any], connection: Any) -> Dict[str, Any]:
        subscription_id = self._require(data, 'subscription_id')
        entry = self._subscriptions.get(subscription_id)
        if entry is None or entry[0] is not connection:
            return {'removed': False}

        del self._subscriptions[subscription_id]
        entry[1].unsubscribe()
        return {'removed': True}

    async def handle_request(
        self,
        request: Dict[str, Any],
        connection: Any = None
    ) -> Dict[str, Any]:
        if not isinstance(request, dict):
            return {
                'request_id': None,
                'success': False,
                'error': 'Request must be a JSON object',
                'error_type': 'ValueError'
            }

        action = request.get('action')
        data = request.get('data') or {}
        request_id = request.get('request_id')

        try:
            async with self._lock:
                if action == 'ping':
                    result = {'pong': True, 'timestamp': datetime.now().isoformat()}

                elif action == 'fetch':
                    query = self._require(data, 'query')
                    result = {'result': await self.client.fetch(query, data.get('params'))}

                elif action == 'get':
                    document = await self.client.get_document(self._require(data, 'id'))
                    result = {'document': document}

                elif action == 'create':
                    document = await self.client.create(self._require(data, 'document'))
                    result = {'document': document}

                elif action == 'patch':
                    transaction = self.client.patch(
                        self._require(data, 'id'),
                        self._require(data, 'fields')
                    )
                    results = await transaction.commit()
                    result = {'results': [r.to_dict() for r in results]}

                elif action == 'delete':
                    result = await self.client.delete(self._require(data, 'id'))

                elif action == 'mutate':
                    mutations = [Mutation.from_dict(m) for m in self._require(data, 'mutations')]
                    results = await self.client.transaction().extend(mutations).commit()
                    result = {'results': [r.to_dict() for r in results]}

                elif action == 'listen':
                    result = self._listen(data, connection)

                elif action == 'unlisten':
                    result = self._unlisten(data, connection)

                elif action == 'upload':
                    raw = base64.b64decode(self._require(data, 'data'), validate=True)
                    metadata = await self.client.assets.upload(
                        self._require(data, 'kind'),
                        ByteBuffer(raw),
                        filename=data.get('filename'),
                        content_type=data.get('content_type')
                    )
                    result = {'asset': metadata.to_document()}

                elif action == 'stats':
                    result = {'stats': self._stats()}

                else:
                    result = {'error': f'Unknown action: {action}', 'error_type': 'UnknownAction'}

            return {
                'request_id': request_id,
                'success': 'error' not in result,
                **result
            }

        except (LocalStoreError, ValueError, LookupError) as e:
            logger.warning(f"Request {action} failed: {e}")
            return {
                'request_id': request_id,
                'success': False,
                'error': str(e),
                'error_type': type(e).__name__
            }
        except Exception as e:
            logger.error(f"Error handling request: {e}", exc_info=True)
            return {
                'request_id': request_id,
                'success': False,
                'error': str(e),
                'error_type': type(e).__name__
            }

    async def _send_loop(self, websocket: ServerConnection, outbox: Outbox):
        try:
            while True:
                message = await outbox.get()
                await websocket.send(json.dumps(message, default=str))
        except websockets.exceptions.ConnectionClosed:
            logger.debug(f"Stopped sending to closed connection {id(websocket)}")

    async def handler(self, websocket: ServerConnection) -> None:
        self.clients.add(websocket)
        outbox = self.register_connection(websocket)
        sender = asyncio.create_task(self._send_loop(websocket, outbox))
        client_id = id(websocket)
        logger.info(f"Client connected: {client_id}")

        try:
            async for message in websocket:
                try:
                    if isinstance(message, bytes):
                        message = message.decode('utf-8')
                    request = json.loads(message)
                    response = await self.handle_request(request, websocket)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    response = {
                        'success': False,
                        'error': 'Invalid JSON',
                        'error_type': 'JSONDecodeError'
                    }
                outbox.put_nowait(response)
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Client disconnected: {client_id}")
        finally:
            self.unregister_connection(websocket)
            self.clients.discard(websocket)
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass

    def process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        """Handle HTTP requests gracefully (health checks, probes, etc.)"""
        upgrade = request.headers.get("Upgrade", "").lower()

        if upgrade != "websocket":
            if request.path == "/health" or request.path == "/":
                return connection.respond(HTTPStatus.OK, "OK\n")
            return connection.respond(HTTPStatus.BAD_REQUEST, "WebSocket endpoint only\n")
        return None

    async def start(self) -> None:
        logger.info(f"Starting WebSocket Data API on {self.host}:{self._requested_port}")

        self._server = await serve(
            self.handler,
            self.host,
            self._requested_port,
            ping_interval=30,
            ping_timeout=10,
            max_size=10 * 1024 * 1024,
            process_request=self.process_request
        )
        logger.info(f"Data API Server running on ws://{self.host}:{self.port}")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def close(self):
        logger.info("Shutting down Data API Server...")

        for subscription_id in list(self._subscriptions):
            _, subscription = self._subscriptions.pop(subscription_id)
            subscription.unsubscribe()

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
