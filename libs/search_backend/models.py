"""Value types exchanged with the search backend.

These are the only shapes a ``SearchBackend`` sees or returns: a translated,
immutable ``DomainQuery`` going out and ``Hit``s plus a total estimate coming
back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Domain(str, Enum):
    """Logical search domains.

    Declaration order is the tie-break priority used when merging hits with
    equal scores: datasets > publishers > regions.
    """
    DATASETS = "datasets"
    PUBLISHERS = "publishers"
    REGIONS = "regions"

    @property
    def priority(self) -> int:
        """Lower sorts first."""
        return _PRIORITY[self]


_PRIORITY = {domain: rank for rank, domain in enumerate(Domain)}


@dataclass(frozen=True)
class FilterClause:
    """One normalized filter on one backend field.

    Either a term set (``values``) or an inclusive range (``gte``/``lte``,
    either bound may be open).
    """

    path: str
    values: Tuple[Any, ...] = ()
    gte: Optional[Any] = None
    lte: Optional[Any] = None

    @property
    def is_range(self) -> bool:
        return not self.values

    def to_dsl(self) -> Dict[str, Any]:
        if not self.is_range:
            return {"terms": {self.path: list(self.values)}}
        bounds = {}
        if self.gte is not None:
            bounds["gte"] = self.gte
        if self.lte is not None:
            bounds["lte"] = self.lte
        return {"range": {self.path: bounds}}


@dataclass(frozen=True)
class DomainQuery:
    """A search request translated for exactly one physical index."""

    domain: Domain
    index_id: str
    size: int
    text: Optional[str] = None
    text_fields: Tuple[str, ...] = ()
    filters: Tuple[FilterClause, ...] = ()

    def to_dsl(self) -> Dict[str, Any]:
        """Render the backend query body.

        Always starts at rank 0: pagination is applied after merging.
        """
        if self.text:
            must: List[Dict[str, Any]] = [{
                "multi_match": {
                    "query": self.text,
                    "fields": list(self.text_fields),
                    "type": "best_fields",
                }
            }]
        else:
            must = [{"match_all": {}}]

        return {
            "from": 0,
            "size": self.size,
            "track_total_hits": True,
            "query": {
                "bool": {
                    "must": must,
                    "filter": [clause.to_dsl() for clause in self.filters],
                }
            },
        }


@dataclass(frozen=True)
class Hit:
    """One result item as returned by the backend."""

    domain: Domain
    id: str
    score: float
    payload: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain.value,
            "id": self.id,
            "score": self.score,
            "payload": dict(self.payload),
        }


@dataclass(frozen=True)
class BackendResponse:
    """Hits for one domain in backend rank order plus the total estimate."""

    hits: Tuple[Hit, ...]
    total: int
