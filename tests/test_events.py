"""
Tests for the mutation event notifier
"""
import logging

from localstore import EventKind, EventNotifier, MutationEvent


def make_event(document_id='a', kind=EventKind.CREATE):
    document = None if kind == EventKind.DELETE else {'_id': document_id, '_type': 'post'}
    return MutationEvent(kind, document_id, document)


class TestMutationEvent:
    """Test MutationEvent wire shape"""

    def test_create_event_dict(self):
        """Create events carry the document"""
        data = make_event().to_dict()
        assert data == {
            'type': 'create',
            'documentId': 'a',
            'document': {'_id': 'a', '_type': 'post'}
        }

    def test_delete_event_omits_document(self):
        """Delete events carry only the id"""
        data = make_event(kind=EventKind.DELETE).to_dict()
        assert data == {'type': 'delete', 'documentId': 'a'}

    def test_from_dict(self):
        """Wire dicts parse back into events"""
        event = MutationEvent.from_dict({'type': 'update', 'documentId': 'x', 'document': {'n': 1}})
        assert event.kind == EventKind.UPDATE
        assert event.document_id == 'x'
        assert event.document == {'n': 1}


class TestEventNotifier:
    """Test EventNotifier"""

    def test_emit_in_registration_order(self):
        """Callbacks run synchronously in registration order"""
        notifier = EventNotifier()
        calls = []
        notifier.subscribe(lambda e: calls.append(('first', e.document_id)))
        notifier.subscribe(lambda e: calls.append(('second', e.document_id)))

        notifier.emit(make_event('x'))

        assert calls == [('first', 'x'), ('second', 'x')]
        assert notifier.channel == 'mutation'

    def test_unsubscribed_listener_receives_nothing(self):
        """Unsubscribe handle removes the registration"""
        notifier = EventNotifier()
        received = []
        unsubscribe = notifier.subscribe(received.append)

        notifier.emit(make_event('a'))
        unsubscribe()
        notifier.emit(make_event('b'))

        assert [e.document_id for e in received] == ['a']
        assert notifier.listener_count == 0

    def test_unsubscribe_handle_is_idempotent(self):
        """Calling the handle twice removes only its own registration"""
        notifier = EventNotifier()
        received = []
        notifier.subscribe(received.append)
        unsubscribe = notifier.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        notifier.emit(make_event())

        assert len(received) == 1
        assert notifier.listener_count == 1

    def test_unsubscribe_unknown_callback_is_noop(self):
        """Removing a callback that was never registered does nothing"""
        notifier = EventNotifier()
        notifier.unsubscribe(print)
        assert notifier.listener_count == 0

    def test_failing_listener_is_isolated(self, caplog):
        """A raising callback is logged and the others still run"""
        notifier = EventNotifier()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        notifier.subscribe(broken)
        notifier.subscribe(received.append)

        with caplog.at_level(logging.ERROR, logger='localstore.events'):
            notifier.emit(make_event())

        assert len(received) == 1
        assert any('boom' in record.getMessage() for record in caplog.records)

    def test_listener_may_unsubscribe_during_dispatch(self):
        """Dispatch iterates a snapshot of the listeners"""
        notifier = EventNotifier()
        received = []
        handles = {}

        def once(event):
            received.append(('once', event.document_id))
            handles['once']()

        handles['once'] = notifier.subscribe(once)
        notifier.subscribe(lambda e: received.append(('always', e.document_id)))

        notifier.emit(make_event('a'))
        notifier.emit(make_event('b'))

        assert received == [('once', 'a'), ('always', 'a'), ('always', 'b')]
