"""OpenSearch search backend implementation."""

from typing import Any, Dict, List, Optional

import structlog
from opensearchpy import AsyncOpenSearch, exceptions

from libs.common.errors import BackendTimeout, BackendUnavailable

from .base import SearchBackend
from .models import BackendResponse, DomainQuery, Hit

logger = structlog.get_logger("search_backend.opensearch")


class OpenSearchBackend(SearchBackend):
    """``AsyncOpenSearch``-based backend.

    One instance (and one connection pool) is shared by all requests; the
    client is safe for concurrent use from a single event loop.
    """

    def __init__(
        self,
        hosts: List[str],
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_certs: bool = False,
        request_timeout: float = 30.0,
        client: Optional[AsyncOpenSearch] = None,
    ):
        """Initialize the OpenSearch backend.

        Args:
            hosts: List of OpenSearch host URLs
            username: OpenSearch username
            password: OpenSearch password
            verify_certs: Whether to verify SSL certificates
            request_timeout: Transport-level timeout in seconds; the gateway
                applies its own, usually tighter, per-domain timeout on top
            client: Pre-built client, mainly for tests
        """
        self.hosts = hosts
        self.client = client or AsyncOpenSearch(
            hosts=hosts,
            http_auth=(username, password) if username and password else None,
            use_ssl=hosts[0].startswith("https"),
            verify_certs=verify_certs,
            ssl_show_warn=False,
            timeout=request_timeout,
        )

    @classmethod
    def from_config(cls, config) -> "OpenSearchBackend":
        """Create a backend from ``SearchGatewayConfig``."""
        return cls(
            hosts=config.backend_hosts,
            username=config.search_es_username,
            password=config.search_es_password,
            verify_certs=config.search_es_verify_certs,
            request_timeout=max(config.search_domain_timeout_seconds * 2, 10.0),
        )

    async def execute(self, index_id: str, query: DomainQuery) -> BackendResponse:
        """Run one query against one index."""
        try:
            response = await self.client.search(index=index_id, body=query.to_dsl())
        except exceptions.ConnectionTimeout as e:
            raise BackendTimeout(
                f"Search on index {index_id} timed out: {e}", reason="transport_timeout"
            )
        except exceptions.NotFoundError as e:
            raise BackendUnavailable(
                f"Index {index_id} not found: {e}", reason="index_not_found"
            )
        except exceptions.ConnectionError as e:
            raise BackendUnavailable(
                f"Could not reach search backend: {e}", reason="connection_error"
            )
        except exceptions.TransportError as e:
            raise BackendUnavailable(
                f"Search on index {index_id} failed with status {e.status_code}",
                reason=f"backend_status_{e.status_code}",
            )

        return self._parse_response(query, response)

    @staticmethod
    def _parse_response(query: DomainQuery, response: Dict[str, Any]) -> BackendResponse:
        hits_section = response.get("hits", {})
        total = hits_section.get("total", 0)
        # Elasticsearch 6 reports a bare integer, later versions an object
        if isinstance(total, dict):
            total = total.get("value", 0)

        hits = []
        for hit in hits_section.get("hits", []):
            score = hit.get("_score")
            hits.append(Hit(
                domain=query.domain,
                id=str(hit["_id"]),
                score=float(score) if score is not None else 0.0,
                payload=hit.get("_source", {}),
            ))

        logger.debug(
            "OpenSearch query completed",
            domain=query.domain.value,
            index=query.index_id,
            results_count=len(hits),
            total=total
        )

        return BackendResponse(hits=tuple(hits), total=int(total))

    async def health_check(self) -> bool:
        """Ping the cluster."""
        try:
            return bool(await self.client.ping())
        except exceptions.TransportError as e:
            logger.error("OpenSearch health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the OpenSearch client connection."""
        await self.client.close()
        logger.info("OpenSearch client connection closed")
