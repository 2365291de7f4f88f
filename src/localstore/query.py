"""
Query Interpreter for the Local Content Store
Parses the small closed set of supported query strings into query shapes
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .events import EventKind, MutationEvent
from .store import ID_FIELD, TYPE_FIELD, Predicate

Params = Optional[Dict[str, Any]]
EventFilter = Callable[[MutationEvent], bool]

TYPE_LITERAL_PATTERN = re.compile(r'^\*\[\s*_type\s*==\s*(["\'])([^"\']+)\1\s*\]$')
TYPE_PARAM_PATTERN = re.compile(r'^\*\[\s*_type\s*==\s*\$([A-Za-z_][A-Za-z0-9_]*)\s*\]$')
BARE_ID_PATTERN = re.compile(r'^[^\s\[\]*$=()"\']+$')


class QueryShape(Enum):
    BY_ID = 'by_id'
    BY_TYPE = 'by_type'
    BY_TYPE_PARAM = 'by_type_param'
    ALL = 'all'
    UNSUPPORTED = 'unsupported'


@dataclass(frozen=True)
class ParsedQuery:
    text: str
    shape: QueryShape
    value: Optional[str] = None

    @property
    def is_single(self) -> bool:
        return self.shape == QueryShape.BY_ID

    def type_name(self, params: Params = None) -> Optional[str]:
        if self.shape == QueryShape.BY_TYPE:
            return self.value
        if self.shape == QueryShape.BY_TYPE_PARAM:
            if not params or not params.get(self.value):
                return None
            return str(params[self.value])
        return None

    def predicate(self, params: Params = None) -> Optional[Predicate]:
        """Store predicate for this query, or None when nothing can match."""
        if self.shape == QueryShape.ALL:
            return lambda doc: True

        if self.shape == QueryShape.BY_ID:
            document_id = self.value
            return lambda doc: doc.get(ID_FIELD) == document_id

        type_name = self.type_name(params)
        if type_name is None:
            return None
        return lambda doc: doc.get(TYPE_FIELD) == type_name

    def event_filter(self, params: Params = None) -> Optional[EventFilter]:
        """
        Listen filter for this query, or None when no event can match.

        Delete events carry only an id, so type-filtered queries cannot check
        the deleted document's type and let every delete through.
        """
        if self.shape == QueryShape.ALL:
            return lambda event: True

        if self.shape == QueryShape.BY_ID:
            document_id = self.value
            return lambda event: event.document_id == document_id

        type_name = self.type_name(params)
        if type_name is None:
            return None

        def matches(event: MutationEvent) -> bool:
            if event.kind == EventKind.DELETE:
                return True
            return event.document is not None and event.document.get(TYPE_FIELD) == type_name

        return matches

    def unmatched_reason(self, params: Params = None) -> Optional[str]:
        if self.shape == QueryShape.UNSUPPORTED:
            return f'Query not recognized or not implemented: "{self.text}"'
        if self.shape == QueryShape.BY_TYPE_PARAM and self.type_name(params) is None:
            return f'Parameter "{self.value}" not provided for query: {self.text}'
        return None


def parse_query(text: str) -> ParsedQuery:
    stripped = text.strip()

    if BARE_ID_PATTERN.match(stripped):
        return ParsedQuery(text, QueryShape.BY_ID, stripped)

    match = TYPE_LITERAL_PATTERN.match(stripped)
    if match:
        return ParsedQuery(text, QueryShape.BY_TYPE, match.group(2))

    match = TYPE_PARAM_PATTERN.match(stripped)
    if match:
        return ParsedQuery(text, QueryShape.BY_TYPE_PARAM, match.group(1))

    if stripped == '*':
        return ParsedQuery(text, QueryShape.ALL)

    return ParsedQuery(text, QueryShape.UNSUPPORTED)
