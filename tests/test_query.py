"""
Tests for the query interpreter
"""
import pytest

from localstore import EventKind, MutationEvent, QueryShape, parse_query


class TestParseQuery:
    """Test parse_query shape recognition"""

    @pytest.mark.parametrize("text, shape, value", [
        ('doc1', QueryShape.BY_ID, 'doc1'),
        ('file-1700000000000-abc', QueryShape.BY_ID, 'file-1700000000000-abc'),
        ('*[_type == "post"]', QueryShape.BY_TYPE, 'post'),
        ("*[_type == 'post']", QueryShape.BY_TYPE, 'post'),
        ('*[ _type=="post" ]', QueryShape.BY_TYPE, 'post'),
        ('*[_type == $t]', QueryShape.BY_TYPE_PARAM, 't'),
        ('*[_type==$docType]', QueryShape.BY_TYPE_PARAM, 'docType'),
        ('*', QueryShape.ALL, None),
        ('  *  ', QueryShape.ALL, None),
    ])
    def test_supported_shapes(self, text, shape, value):
        """Each supported form maps to its shape and value"""
        parsed = parse_query(text)
        assert parsed.shape == shape
        assert parsed.value == value

    @pytest.mark.parametrize("text", [
        '',
        '   ',
        'two words',
        '*[_type == "post\']',
        '*[_type == "post" && title == "x"]',
        '*[title == "x"]',
        '*[_type == $]',
        'count(*)',
    ])
    def test_unsupported_shapes(self, text):
        """Anything else is unsupported and never raises"""
        parsed = parse_query(text)
        assert parsed.shape == QueryShape.UNSUPPORTED
        assert parsed.predicate() is None
        assert parsed.unmatched_reason() is not None

    def test_original_text_is_kept(self):
        """ParsedQuery remembers the caller's text"""
        assert parse_query(' doc1 ').text == ' doc1 '
        assert parse_query(' doc1 ').value == 'doc1'


class TestPredicates:
    """Test store predicates built from parsed queries"""

    docs = [
        {'_id': 'a', '_type': 'post'},
        {'_id': 'b', '_type': 'page'},
        {'_id': 'c', '_type': 'post'},
    ]

    def matching(self, text, params=None):
        predicate = parse_query(text).predicate(params)
        if predicate is None:
            return None
        return [doc['_id'] for doc in self.docs if predicate(doc)]

    def test_by_type(self):
        """Literal type query matches only that type"""
        assert self.matching('*[_type == "post"]') == ['a', 'c']

    def test_param_equals_literal(self):
        """Parameterized type query matches like the literal query"""
        assert self.matching('*[_type == $t]', {'t': 'post'}) == self.matching('*[_type == "post"]')

    def test_missing_param_matches_nothing(self):
        """Missing params resolve to no predicate plus a reason"""
        parsed = parse_query('*[_type == $t]')
        assert parsed.predicate() is None
        assert parsed.predicate({'other': 'post'}) is None
        assert parsed.predicate({'t': None}) is None
        assert parsed.predicate({'t': ''}) is None
        assert '"t"' in parsed.unmatched_reason({'t': ''})
        assert '"t"' in parsed.unmatched_reason({})
        assert parsed.unmatched_reason({'t': 'post'}) is None

    def test_all(self):
        """Star matches every document"""
        assert self.matching('*') == ['a', 'b', 'c']


class TestEventFilters:
    """Test listen filters built from parsed queries"""

    def test_by_id_filter(self):
        """By-id listeners see only their document"""
        event_filter = parse_query('a').event_filter()
        assert event_filter(MutationEvent(EventKind.UPDATE, 'a', {'_id': 'a', '_type': 'post'}))
        assert event_filter(MutationEvent(EventKind.DELETE, 'a'))
        assert not event_filter(MutationEvent(EventKind.DELETE, 'b'))

    def test_type_filter_passes_all_deletes(self):
        """Type listeners see creates of their type and every delete"""
        event_filter = parse_query('*[_type == $t]').event_filter({'t': 'post'})

        assert event_filter(MutationEvent(EventKind.CREATE, 'a', {'_id': 'a', '_type': 'post'}))
        assert not event_filter(MutationEvent(EventKind.CREATE, 'b', {'_id': 'b', '_type': 'page'}))
        assert event_filter(MutationEvent(EventKind.DELETE, 'b'))

    def test_unsupported_filter_is_none(self):
        """Unsupported queries and unresolved params produce no filter"""
        assert parse_query('*[title == "x"]').event_filter() is None
        assert parse_query('*[_type == $t]').event_filter() is None
