"""
List query shape shared by every DocumentStore implementation.

filter is either a NativeQuery (pushed down to backends that have a query
language) or a plain callable evaluated client-side. Backends that cannot run
a NativeQuery raise UnsupportedQuery instead of silently ignoring it.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional, Union

Document = dict[str, Any]
Predicate = Callable[[Document], bool]
Comparator = Callable[[Document, Document], int]


@dataclass(frozen=True)
class NativeQuery:
    """
    A backend-native filter expression.

    For DynamoDB this is a FilterExpression, with its placeholder maps:
        NativeQuery("#s = :s", values={":s": "ready"}, names={"#s": "status"})
    """

    expression: str
    values: dict = field(default_factory=dict)
    names: dict = field(default_factory=dict)


@dataclass
class ListQuery:
    """
    Options for DocumentStore.list_documents.

    Applied in order: filter -> sort -> select -> limit.
    limit bounds the number of documents returned, not scanned.
    """

    filter: Union[NativeQuery, Predicate, str, None] = None
    sort: Union[Literal["latest"], Comparator, None] = None
    select: Optional[list[str]] = None
    limit: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.filter, str):
            self.filter = NativeQuery(self.filter)
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")
        if isinstance(self.sort, str) and self.sort != "latest":
            raise ValueError(f"Unknown sort '{self.sort}'. Use 'latest' or a comparator.")

    @property
    def native_filter(self) -> Optional[NativeQuery]:
        return self.filter if isinstance(self.filter, NativeQuery) else None

    @property
    def predicate(self) -> Optional[Predicate]:
        if self.filter is None or isinstance(self.filter, NativeQuery):
            return None
        return self.filter
