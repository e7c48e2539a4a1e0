"""Base search backend interface.

Defines the contract the gateway depends on, independent of the backing
cluster (OpenSearch, Elasticsearch, an in-process fake in tests).

All methods are asynchronous. Implementations execute exactly one request per
call and never retry: retry policy belongs to the caller.
"""

from abc import ABC, abstractmethod

from .models import BackendResponse, DomainQuery


class SearchBackend(ABC):
    """Abstract base class for search backends.

    Implementations must raise ``BackendUnavailable`` or ``BackendTimeout``
    (from ``libs.common.errors``) for transport and server-side failures so
    the gateway can downgrade them to partial-failure markers.
    """

    @abstractmethod
    async def execute(self, index_id: str, query: DomainQuery) -> BackendResponse:
        """Run ``query`` against the physical index ``index_id``.

        Returns hits in backend rank order plus the backend's total estimate.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the backend is reachable."""
        pass

    async def close(self) -> None:
        """Release network resources. No-op by default."""
        return None
