"""Request-scoped data model of the federated search gateway."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from libs.common.errors import BackendError
from libs.search_backend.models import Domain, Hit


@dataclass(frozen=True)
class Pagination:
    """Window over the merged hit sequence."""

    offset: int
    limit: int

    @property
    def end(self) -> int:
        return self.offset + self.limit


@dataclass(frozen=True)
class SearchRequest:
    """A generic, backend-agnostic search request.

    ``domains=None`` means every registered domain; ``limit=None`` means the
    configured default page size.
    """

    text: Optional[str] = None
    filters: Mapping[str, Any] = field(default_factory=dict)
    domains: Optional[Tuple[str, ...]] = None
    offset: int = 0
    limit: Optional[int] = None


@dataclass(frozen=True)
class DomainFailure:
    """Partial-failure marker for a domain whose backend call failed."""

    domain: Domain
    code: str
    reason: str

    @classmethod
    def from_error(cls, domain: Domain, error: BackendError) -> "DomainFailure":
        return cls(domain=domain, code=error.code, reason=error.reason)

    def to_dict(self) -> Dict[str, Any]:
        return {"domain": self.domain.value, "code": self.code, "reason": self.reason}


@dataclass(frozen=True)
class AggregatedResult:
    """One merged, ranked page of hits across domains."""

    hits: Tuple[Hit, ...]
    totals: Mapping[Domain, int]
    pagination: Pagination
    failures: Tuple[DomainFailure, ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)

    @property
    def total(self) -> int:
        """Sum of the per-domain total estimates."""
        return sum(self.totals.values())
