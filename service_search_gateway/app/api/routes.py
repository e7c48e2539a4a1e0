"""API routes for the search gateway."""

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
import structlog

from libs.common.auth import AuthContext, AuthenticationGate, create_auth_dependency

from ..federation.search_gateway import SearchGateway
from ..models import AggregatedResult, SearchRequest

logger = structlog.get_logger("search_gateway.api")

router = APIRouter()


class SearchRequestBody(BaseModel):
    """Request model for the search endpoint."""
    model_config = ConfigDict(extra="forbid")

    query: Optional[str] = Field(None, description="Free-text query; blank or '*' matches everything")
    filters: Dict[str, Any] = Field(default_factory=dict, description="Filter name -> value(s) or range")
    domains: Optional[List[str]] = Field(None, description="Domains to search; all when omitted")
    offset: int = Field(0, description="Offset into the merged result list")
    limit: Optional[int] = Field(None, description="Page size; configured default when omitted")

    def to_search_request(self) -> SearchRequest:
        return SearchRequest(
            text=self.query,
            filters=dict(self.filters),
            domains=tuple(self.domains) if self.domains is not None else None,
            offset=self.offset,
            limit=self.limit,
        )


class HitModel(BaseModel):
    """One merged search hit."""
    domain: str = Field(..., description="Domain of origin")
    id: str = Field(..., description="Backend identifier, unique within its domain")
    score: float = Field(..., description="Backend relevance score")
    payload: Dict[str, Any] = Field(..., description="Indexed document")


class DomainFailureModel(BaseModel):
    """Partial-failure marker."""
    domain: str = Field(..., description="Domain whose query failed")
    code: str = Field(..., description="BackendUnavailable or BackendTimeout")
    reason: str = Field(..., description="Machine-readable failure reason")


class SearchResponse(BaseModel):
    """Response model for the search endpoint."""
    hits: List[HitModel] = Field(..., description="Merged, ranked page of hits")
    totals: Dict[str, int] = Field(..., description="Total-count estimate per successful domain")
    failures: List[DomainFailureModel] = Field(..., description="Domains that failed")
    offset: int = Field(..., description="Offset applied to the merged list")
    limit: int = Field(..., description="Page size applied to the merged list")
    latency_ms: float = Field(..., description="Gateway latency in milliseconds")

    @classmethod
    def from_result(cls, result: AggregatedResult, latency_ms: float) -> "SearchResponse":
        return cls(
            hits=[HitModel(**hit.to_dict()) for hit in result.hits],
            totals={domain.value: total for domain, total in result.totals.items()},
            failures=[DomainFailureModel(**failure.to_dict()) for failure in result.failures],
            offset=result.pagination.offset,
            limit=result.pagination.limit,
            latency_ms=latency_ms,
        )


def get_search_gateway(request: Request) -> SearchGateway:
    """Get the search gateway from application state."""
    return request.app.state.search_gateway


def get_gate(request: Request) -> AuthenticationGate:
    return get_search_gateway(request).gate


require_caller = create_auth_dependency(get_gate)


@router.post("/search", response_model=SearchResponse)
async def search(
    body: SearchRequestBody,
    caller: AuthContext = Depends(require_caller),
    search_gateway: SearchGateway = Depends(get_search_gateway),
):
    """Search one or more domains and return one merged page.

    The caller is authenticated by ``require_caller`` before the body is
    validated. Gateway errors propagate to the application's exception
    handlers, which render them with their stable error codes.
    """
    start_time = time.time()

    result = await search_gateway.search(caller, body.to_search_request())

    latency_ms = (time.time() - start_time) * 1000
    return SearchResponse.from_result(result, latency_ms)


@router.get("/domains")
async def list_domains(search_gateway: SearchGateway = Depends(get_search_gateway)):
    """List searchable domains in merge priority order."""
    return {"domains": search_gateway.registry.names()}
