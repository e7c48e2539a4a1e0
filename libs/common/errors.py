"""Error taxonomy for the search gateway.

Every error a client can observe carries a stable machine-readable ``code``,
an HTTP ``status_code`` and a short ``reason``. The HTTP layer renders them as
``{"error": {"code", "reason", "message"}}``.

Groups
- auth: ``Unauthenticated``, ``Forbidden``
- client input: ``UnknownDomain``, ``InvalidQuery`` (never retried)
- per-domain backend: ``BackendUnavailable``, ``BackendTimeout`` (absorbed into
  partial-failure markers by the gateway)
- request level: ``AllDomainsFailed``, ``InternalError``
"""

from typing import Any, Dict, Iterable, List, Optional


class GatewayError(Exception):
    """Base exception for errors surfaced by the gateway."""

    code = "InternalError"
    status_code = 500
    default_reason = "internal_error"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason

    def to_dict(self) -> Dict[str, Any]:
        """Serializable error body."""
        return {"code": self.code, "reason": self.reason, "message": self.message}


class ConfigurationError(ValueError):
    """Invalid settings detected at startup."""
    pass


class Unauthenticated(GatewayError):
    """Missing, malformed, expired or not-yet-valid credential."""

    code = "Unauthenticated"
    status_code = 401
    default_reason = "missing_token"


class Forbidden(GatewayError):
    """Credential present but not signed with the shared secret."""

    code = "Forbidden"
    status_code = 403
    default_reason = "invalid_signature"


class UnknownDomain(GatewayError):
    """One or more requested domains are not in the registry."""

    code = "UnknownDomain"
    status_code = 400
    default_reason = "unknown_domain"

    def __init__(self, domains: Iterable[str]):
        self.domains: List[str] = list(domains)
        super().__init__(f"Unknown search domain(s): {', '.join(self.domains)}")

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["domains"] = self.domains
        return body


class InvalidQuery(GatewayError):
    """Malformed request input, naming the offending field."""

    code = "InvalidQuery"
    status_code = 400
    default_reason = "invalid_query"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid value for '{field}': {message}")

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        return body


class BackendError(GatewayError):
    """A single backend call failed."""

    code = "BackendUnavailable"
    status_code = 503
    default_reason = "backend_error"


class BackendUnavailable(BackendError):
    """Transport or server-side failure for one domain."""
    pass


class BackendTimeout(BackendError):
    """One domain call exceeded its own time budget."""

    code = "BackendTimeout"
    status_code = 504
    default_reason = "timeout"


class AllDomainsFailed(GatewayError):
    """Every requested domain failed; nothing to aggregate."""

    code = "AllDomainsFailed"
    status_code = 503
    default_reason = "all_domains_failed"

    def __init__(self, failures: List[Any]):
        self.failures = list(failures)
        domains = ", ".join(failure.domain.value for failure in self.failures)
        super().__init__(f"All requested domains failed: {domains}")

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["failures"] = [failure.to_dict() for failure in self.failures]
        return body


class InternalError(GatewayError):
    """Invariant violation inside the gateway. Always a bug."""
    pass
