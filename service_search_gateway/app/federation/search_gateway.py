"""Federated search orchestration.

Authenticates the caller, resolves the requested domains, translates one
query per domain, fans the queries out concurrently and merges whatever came
back into one ranked page.

Failure policy
- auth and client-input errors propagate unchanged and fail the request
- a failing domain (timeout, backend error) becomes a ``DomainFailure``
  marker and is left out of aggregation
- only when every requested domain fails does the request fail, with
  ``AllDomainsFailed``
- nothing is retried here; retry policy belongs to the caller
"""

import asyncio
import contextlib
import dataclasses
import time
from typing import Dict, List, Optional, Tuple, Union

import structlog

from libs.common.auth import AuthContext, AuthenticationGate
from libs.common.errors import (
    AllDomainsFailed,
    BackendError,
    BackendTimeout,
    BackendUnavailable,
    GatewayError,
    InternalError,
    InvalidQuery,
)
from libs.common.logging import log_performance
from libs.common.metrics import MetricsCollector
from libs.search_backend.base import SearchBackend
from libs.search_backend.models import BackendResponse, Domain, DomainQuery

from ..models import AggregatedResult, DomainFailure, Pagination, SearchRequest
from ..ranking.aggregator import ResultAggregator
from ..registry.index_registry import IndexRegistry
from ..translation.query_translator import QueryTranslator

logger = structlog.get_logger("search_gateway.gateway")

DomainOutcome = Union[BackendResponse, DomainFailure]


class SearchGateway:
    """Entry point for federated search requests.

    Holds only process-lifetime, read-only collaborators; all request state
    lives on the stack of ``search``.
    """

    def __init__(
        self,
        gate: AuthenticationGate,
        registry: IndexRegistry,
        translator: QueryTranslator,
        backend: SearchBackend,
        aggregator: Optional[ResultAggregator] = None,
        domain_timeout: float = 5.0,
        max_page_size: int = 100,
        default_page_size: int = 10,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Compose the gateway.

        Parameters
        - gate: Validates the caller's bearer token
        - registry: Logical domain -> physical index resolution
        - translator: Builds one ``DomainQuery`` per domain
        - backend: Executes single-index queries
        - domain_timeout: Seconds each domain call may take, independently
        - max_page_size / default_page_size: Bounds for ``limit``
        - metrics: Optional collector for per-domain outcomes
        """
        self.gate = gate
        self.registry = registry
        self.translator = translator
        self.backend = backend
        self.aggregator = aggregator or ResultAggregator()
        self.domain_timeout = domain_timeout
        self.max_page_size = max_page_size
        self.default_page_size = default_page_size
        self.metrics = metrics

    @classmethod
    def from_config(
        cls,
        config,
        backend: SearchBackend,
        metrics: Optional[MetricsCollector] = None,
    ) -> "SearchGateway":
        """Wire a gateway from ``SearchGatewayConfig``.

        Fails fast with ``ConfigurationError`` on a missing secret or index id.
        """
        registry = IndexRegistry.from_config(config)
        return cls(
            gate=AuthenticationGate.from_config(config),
            registry=registry,
            translator=QueryTranslator.from_config(config, registry),
            backend=backend,
            domain_timeout=config.search_domain_timeout_seconds,
            max_page_size=config.search_max_page_size,
            default_page_size=config.search_default_page_size,
            metrics=metrics,
        )

    async def search(
        self,
        authorization: Union[str, AuthContext, None],
        request: SearchRequest,
    ) -> AggregatedResult:
        """Run one federated search.

        ``authorization`` is the raw ``Authorization`` header value, or an
        ``AuthContext`` the HTTP layer already validated with this gate.

        Raises ``Unauthenticated``/``Forbidden``, ``UnknownDomain``,
        ``InvalidQuery`` or ``AllDomainsFailed``.
        """
        start_time = time.perf_counter()
        domain_count = 0
        try:
            caller = self._authenticate(authorization)
            domains, request, pagination = self.normalize(request)
            domain_count = len(domains)
            queries = self.translator.translate_all(request, domains)

            responses, failures = await self._dispatch(queries, caller)
            if not responses:
                raise AllDomainsFailed(failures)

            result = self.aggregator.merge(responses, pagination, failures)
        except GatewayError as e:
            self._record_search(e.code, domain_count, start_time)
            raise
        except Exception:
            self._record_search(InternalError.code, domain_count, start_time)
            raise

        self._record_search("partial" if result.is_partial else "ok", domain_count, start_time)
        logger.info(
            "Federated search completed",
            subject=caller.subject,
            domains=[domain.value for domain in domains],
            results_count=len(result.hits),
            failed_domains=[failure.domain.value for failure in result.failures],
            latency_ms=(time.perf_counter() - start_time) * 1000
        )
        return result

    def _authenticate(self, authorization: Union[str, AuthContext, None]) -> AuthContext:
        if isinstance(authorization, AuthContext):
            return authorization
        return self.gate.authenticate(authorization)

    def normalize(self, request: SearchRequest) -> Tuple[Tuple[Domain, ...], SearchRequest, Pagination]:
        """Validate domains and pagination, filling in defaults.

        Any unknown domain fails the whole request: asking for one is a
        client bug, not a partial-result situation.
        """
        if request.domains is None:
            domains = self.registry.domains
        else:
            if not request.domains:
                raise InvalidQuery("domains", "must name at least one domain")
            domains = self.registry.resolve_all(request.domains)

        limit = request.limit if request.limit is not None else self.default_page_size
        if request.offset < 0:
            raise InvalidQuery("offset", "must be greater than or equal to 0")
        if limit <= 0:
            raise InvalidQuery("limit", "must be greater than 0")
        if limit > self.max_page_size:
            raise InvalidQuery("limit", f"must not exceed {self.max_page_size}")

        normalized = dataclasses.replace(
            request,
            domains=tuple(domain.value for domain in domains),
            limit=limit,
        )
        return domains, normalized, Pagination(offset=request.offset, limit=limit)

    async def _dispatch(
        self,
        queries: List[DomainQuery],
        caller: AuthContext,
    ) -> Tuple[Dict[Domain, BackendResponse], List[DomainFailure]]:
        """Fan out every domain query and wait for all of them to settle.

        ``_run_domain`` never raises for backend failures, so ``gather`` only
        propagates cancellation, which it forwards to every child.
        """
        outcomes = await asyncio.gather(*(self._run_domain(query, caller) for query in queries))

        responses: Dict[Domain, BackendResponse] = {}
        failures: List[DomainFailure] = []
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, DomainFailure):
                failures.append(outcome)
            else:
                responses[query.domain] = outcome
        return responses, failures

    async def _run_domain(self, query: DomainQuery, caller: AuthContext) -> DomainOutcome:
        """Execute one domain query under its own timeout."""
        start_time = time.perf_counter()
        try:
            with self._in_flight(query.domain):
                response = await asyncio.wait_for(
                    self.backend.execute(query.index_id, query),
                    timeout=self.domain_timeout,
                )
        except asyncio.TimeoutError:
            error: BackendError = BackendTimeout(
                f"Domain {query.domain.value} exceeded {self.domain_timeout}s",
                reason="timeout",
            )
        except BackendError as e:
            error = e
        except Exception as e:
            logger.exception(
                "Unexpected backend failure",
                domain=query.domain.value,
                index=query.index_id
            )
            error = BackendUnavailable(str(e), reason="unexpected_error")
        else:
            duration = time.perf_counter() - start_time
            self._record_domain(query.domain, "ok", duration)
            log_performance(
                "domain_query",
                duration * 1000,
                domain=query.domain.value,
                results_count=len(response.hits),
                total=response.total
            )
            return response

        duration = time.perf_counter() - start_time
        self._record_domain(query.domain, error.code, duration)
        logger.warning(
            "Domain query failed",
            domain=query.domain.value,
            index=query.index_id,
            subject=caller.subject,
            code=error.code,
            reason=error.reason,
            error=error.message,
            duration_ms=duration * 1000
        )
        return DomainFailure.from_error(query.domain, error)

    def _in_flight(self, domain: Domain):
        if self.metrics is None:
            return contextlib.nullcontext()
        return self.metrics.track_domain_query(domain.value).track_inprogress()

    def _record_domain(self, domain: Domain, outcome: str, duration: float) -> None:
        if self.metrics is not None:
            self.metrics.record_domain_query(domain.value, outcome, duration)

    def _record_search(self, outcome: str, domain_count: int, start_time: float) -> None:
        if self.metrics is not None:
            self.metrics.record_search(outcome, domain_count, time.perf_counter() - start_time)

    async def health_check(self) -> bool:
        """Check that the backend is reachable."""
        return await self.backend.health_check()

    async def close(self) -> None:
        """Release backend resources."""
        await self.backend.close()
