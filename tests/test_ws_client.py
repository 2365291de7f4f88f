"""
End-to-end tests for the data API over a real WebSocket connection
"""
import asyncio

import pytest
import pytest_asyncio

from localstore import DataAPIClient, EventKind, Mutation, RemoteError
from store_api import DataAPIServer

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def server(client):
    server = DataAPIServer(host='127.0.0.1', port=0, client=client)
    await server.start()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def api(server):
    api = DataAPIClient(f"ws://127.0.0.1:{server.port}")
    assert await api.connect()
    yield api
    await api.disconnect()


async def wait_until(condition, timeout=5.0):
    async def poll():
        while not condition():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout=timeout)


async def http_status(port, path):
    reader, writer = await asyncio.open_connection('127.0.0.1', port)
    writer.write(f"GET {path} HTTP/1.1\r\nHost: 127.0.0.1\r\n\r\n".encode('ascii'))
    await writer.drain()
    status_line = await asyncio.wait_for(reader.readline(), timeout=5.0)
    writer.close()
    return int(status_line.split()[1])


class TestRequests:
    """Test request/response actions"""

    async def test_ping(self, api):
        """The server answers pings"""
        assert await api.ping() is True

    async def test_document_round_trip(self, api):
        """Create, fetch, patch and delete over the wire"""
        created = await api.create({'_id': 'doc1', '_type': 'test', 'title': 'Initial'})
        assert created['_createdAt']

        assert (await api.get_document('doc1'))['title'] == 'Initial'
        assert [d['_id'] for d in await api.fetch('*[_type == "test"]')] == ['doc1']

        results = await api.patch('doc1', {'title': 'Updated'})
        assert results[0]['document']['title'] == 'Updated'

        assert await api.delete('doc1') == {'results': [{'id': 'doc1'}]}
        assert await api.fetch('doc1') is None

    async def test_mutate(self, api):
        """Mutations travel in wire shape"""
        results = await api.mutate([
            Mutation.create({'_id': 'a', '_type': 'post'}),
            Mutation.patch('a', {'n': 1}),
        ])
        assert [r['operation'] for r in results] == ['create', 'patch']
        assert (await api.get_document('a'))['n'] == 1

    async def test_remote_error(self, api):
        """Error responses raise RemoteError with the remote type"""
        await api.create({'_id': 'a', '_type': 'post'})

        with pytest.raises(RemoteError) as exc_info:
            await api.create({'_id': 'a', '_type': 'post'})

        assert exc_info.value.error_type == 'DuplicateIdError'

    async def test_upload(self, api, tmp_path):
        """Uploads are decoded and stored as assets"""
        asset = await api.upload('file', b'0123456789abcdefghij', filename='a.txt',
                                 content_type='text/plain')

        assert asset['size'] == 20
        assert asset['originalFilename'] == 'a.txt'
        assert (tmp_path / asset['url']).read_bytes() == b'0123456789abcdefghij'

    async def test_stats(self, api):
        """Stats include process figures"""
        stats = await api.stats()
        assert stats['connections'] == 1
        assert stats['memory_mb'] > 0


class TestListen:
    """Test pushed listen events"""

    async def test_events_are_pushed(self, api):
        """Matching mutations arrive at the callback in order"""
        received = []
        await api.listen('*[_type == $t]', received.append, {'t': 'post'})

        await api.create({'_id': 'p1', '_type': 'post'})
        await api.create({'_id': 'g1', '_type': 'page'})
        await api.delete('g1')

        await wait_until(lambda: len(received) == 2)
        assert [(e.kind, e.document_id) for e in received] == [
            (EventKind.CREATE, 'p1'), (EventKind.DELETE, 'g1')
        ]
        assert received[0].document['_type'] == 'post'

    async def test_async_callback(self, api):
        """Coroutine callbacks are awaited"""
        received = asyncio.Event()

        async def on_event(event):
            received.set()

        await api.listen('*', on_event)
        await api.create({'_id': 'a', '_type': 'post'})

        await asyncio.wait_for(received.wait(), timeout=5.0)

    async def test_callback_can_make_requests(self, api):
        """A callback may await a request while events keep arriving"""
        seen = []
        done = asyncio.Event()

        async def on_event(event):
            document = await api.get_document(event.document_id)
            seen.append(document['title'])
            if len(seen) == 2:
                done.set()

        await api.listen('*', on_event)
        await api.create({'_id': 'x', '_type': 'post', 'title': 'first'})
        await api.create({'_id': 'y', '_type': 'post', 'title': 'second'})

        await asyncio.wait_for(done.wait(), timeout=5.0)
        assert seen == ['first', 'second']

    async def test_disconnect_stops_dispatch(self, server):
        """disconnect cancels the dispatch task"""
        api = DataAPIClient(f"ws://127.0.0.1:{server.port}")
        assert await api.connect()
        dispatch_task = api._dispatch_task

        await api.disconnect()

        assert dispatch_task.cancelled()
        assert api._dispatch_task is None

    async def test_unlisten(self, api, server):
        """Unlistened subscriptions stop delivering"""
        received = []
        subscription_id = await api.listen('*', received.append)

        assert await api.unlisten(subscription_id) is True
        await api.create({'_id': 'a', '_type': 'post'})

        assert server.subscription_count == 0
        assert received == []

    async def test_disconnect_drops_subscriptions(self, server):
        """Closing a connection removes its subscriptions on the server"""
        api = DataAPIClient(f"ws://127.0.0.1:{server.port}")
        await api.listen('*', lambda event: None)
        assert server.subscription_count == 1

        await api.disconnect()

        await wait_until(lambda: server.subscription_count == 0)


class TestHttp:
    """Test plain HTTP probes"""

    async def test_health(self, server):
        """Health probes get 200"""
        assert await http_status(server.port, '/health') == 200
        assert await http_status(server.port, '/') == 200

    async def test_other_paths(self, server):
        """Other plain HTTP requests get 400"""
        assert await http_status(server.port, '/documents') == 400


class TestConnection:
    """Test connection handling"""

    async def test_unreachable_server(self):
        """Connecting to a closed port reports failure"""
        api = DataAPIClient("ws://127.0.0.1:9")
        assert await api.connect() is False
        with pytest.raises(ConnectionError):
            await api.request('ping')
