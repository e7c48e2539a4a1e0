"""Merging and ranking of per-domain hit sets.

Domains are disjoint identifier spaces, so two hits from different domains
are never merged, and the backend is trusted not to return duplicates within
one domain. The aggregator only orders and slices.

Ordering key, all ascending:
1. negated relevance score (highest score first)
2. domain priority (datasets > publishers > regions)
3. original rank within the domain's own response
"""

import math
from typing import Iterable, List, Mapping, Optional, Tuple

import structlog

from libs.common.errors import InternalError
from libs.search_backend.models import BackendResponse, Domain, Hit

from ..models import AggregatedResult, DomainFailure, Pagination

logger = structlog.get_logger("search_gateway.aggregator")

_RankedHit = Tuple[Tuple[float, int, int], Hit]


class ResultAggregator:
    """Merges successful per-domain responses into one ranked page."""

    def merge(
        self,
        per_domain: Mapping[Domain, BackendResponse],
        pagination: Pagination,
        failures: Optional[Iterable[DomainFailure]] = None,
    ) -> AggregatedResult:
        """Sort every hit globally, then slice ``[offset, offset + limit)``.

        A domain with no hits is reported with its (possibly zero) total; a
        ``limit`` beyond the available hits just yields a shorter page.
        """
        failures = tuple(failures or ())
        failed = {failure.domain for failure in failures}

        ranked: List[_RankedHit] = []
        totals = {}
        for domain in sorted(per_domain, key=lambda d: d.priority):
            if domain in failed:
                raise InternalError(
                    f"Domain {domain.value} reported both hits and a failure",
                    reason="aggregation_invariant",
                )
            response = per_domain[domain]
            totals[domain] = response.total
            for rank, hit in enumerate(response.hits):
                ranked.append((self._sort_key(domain, rank, hit), hit))

        ranked.sort(key=lambda item: item[0])
        page = tuple(hit for _, hit in ranked[pagination.offset:pagination.end])

        logger.info(
            "Domain results merged",
            domains=[domain.value for domain in totals],
            candidate_count=len(ranked),
            page_size=len(page),
            offset=pagination.offset,
            limit=pagination.limit,
            failed_domains=[failure.domain.value for failure in failures]
        )

        return AggregatedResult(
            hits=page,
            totals=totals,
            pagination=pagination,
            failures=failures,
        )

    @staticmethod
    def _sort_key(domain: Domain, rank: int, hit: Hit) -> Tuple[float, int, int]:
        if hit.domain is not domain:
            raise InternalError(
                f"Hit {hit.id} from {hit.domain.value} reported under {domain.value}",
                reason="aggregation_invariant",
            )
        if not math.isfinite(hit.score):
            raise InternalError(
                f"Hit {hit.id} in {domain.value} has non-finite score {hit.score}",
                reason="aggregation_invariant",
            )
        return (-hit.score, domain.priority, rank)
