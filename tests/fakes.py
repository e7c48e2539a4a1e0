"""In-process test doubles for the search backend."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from libs.search_backend.base import SearchBackend
from libs.search_backend.models import BackendResponse, Domain, DomainQuery, Hit

TEST_SECRET = "test-shared-secret-for-the-search-gateway"

INDEX_IDS = {
    "datasets": "datasets-v47",
    "publishers": "publishers-v3",
    "regions": "regions-v21",
}


def make_response(domain: Domain, scores: Sequence[float], total: Optional[int] = None,
                  prefix: Optional[str] = None) -> BackendResponse:
    """Hits with ids ``<prefix>-0``, ``<prefix>-1``... in the given order."""
    prefix = prefix or domain.value
    hits = tuple(
        Hit(domain=domain, id=f"{prefix}-{rank}", score=score, payload={"rank": rank})
        for rank, score in enumerate(scores)
    )
    return BackendResponse(hits=hits, total=len(hits) if total is None else total)


class FakeBackend(SearchBackend):
    """Answers per index id with a canned response, an exception, or a delay.

    ``responses`` maps an index id to either a ``BackendResponse`` or an
    exception instance to raise. ``delays`` maps an index id to seconds to
    sleep before answering.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None,
                 delays: Optional[Dict[str, float]] = None, healthy: bool = True):
        self.responses = responses or {}
        self.delays = delays or {}
        self.healthy = healthy
        self.calls: List[Tuple[str, DomainQuery]] = []
        self.cancelled: List[str] = []
        self.closed = False

    async def execute(self, index_id: str, query: DomainQuery) -> BackendResponse:
        self.calls.append((index_id, query))
        try:
            if index_id in self.delays:
                await asyncio.sleep(self.delays[index_id])
        except asyncio.CancelledError:
            self.cancelled.append(index_id)
            raise

        outcome = self.responses.get(index_id)
        if outcome is None:
            return BackendResponse(hits=(), total=0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True
