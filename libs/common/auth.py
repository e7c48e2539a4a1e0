"""Authentication for the search gateway.

Callers present a bearer JWT signed (HS256 by default) with the shared secret
held by every service on the internal network. Validation is a pure function
of the token, the secret and the wall clock: no session store, no lookup, no
process-wide mutable state.

Design
- ``AuthenticationGate`` validates tokens and issues new ones
- ``AuthContext`` is the per-request caller identity derived from a token
- Expired tokens fail with ``Unauthenticated`` / ``token_expired`` so clients
  can tell "fetch a fresh token" apart from ``Forbidden`` (wrong secret)
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from .errors import ConfigurationError, Forbidden, Unauthenticated

logger = structlog.get_logger("auth")

BEARER_SCHEME = "bearer"

# Claims that may carry the caller identity, in order of preference.
# ``userId`` is used by session tokens, ``service`` by service tokens.
IDENTITY_CLAIMS = ("sub", "userId", "service")


@dataclass(frozen=True)
class AuthContext:
    """Validated caller identity for a single request."""

    subject: str
    expires_at: datetime
    issued_at: Optional[datetime] = None
    claims: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_service(self) -> bool:
        """True for service-to-service tokens (``type=internal``)."""
        return self.claims.get("type") == "internal"


class AuthenticationGate:
    """Validates bearer tokens against the shared secret.

    Keep token payloads minimal (subject, expiry, token type) and never put
    sensitive data in them: they are signed, not encrypted.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        leeway_seconds: int = 0,
        default_ttl: timedelta = timedelta(minutes=30),
    ):
        """Configure the gate.

        Parameters
        - secret_key: Shared symmetric key for signing/verification
        - algorithm: The only JWT algorithm accepted (default HS256)
        - leeway_seconds: Clock-skew tolerance for ``exp``/``nbf``/``iat``
        - default_ttl: Lifetime of tokens issued without an explicit TTL
        """
        if not secret_key:
            raise ConfigurationError("A non-empty JWT shared secret is required")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.leeway_seconds = leeway_seconds
        self.default_ttl = default_ttl

    @classmethod
    def from_config(cls, config) -> "AuthenticationGate":
        """Create a gate from ``SearchGatewayConfig``."""
        return cls(
            secret_key=config.search_jwt_secret,
            algorithm=config.search_jwt_algorithm,
            leeway_seconds=config.search_jwt_leeway_seconds,
        )

    def issue_token(
        self,
        subject: str,
        ttl: Optional[timedelta] = None,
        extra_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Sign a time-bounded token for ``subject``."""
        now = datetime.now(timezone.utc)
        to_encode = dict(extra_claims or {})
        to_encode.update({
            "sub": subject,
            "iat": now,
            "exp": now + (ttl if ttl is not None else self.default_ttl),
        })
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def issue_service_token(self, service_name: str) -> str:
        """Sign a 24h service-to-service token (``type=internal``)."""
        return self.issue_token(
            service_name,
            ttl=timedelta(hours=24),
            extra_claims={"service": service_name, "type": "internal"},
        )

    def authenticate(self, authorization: Optional[str]) -> AuthContext:
        """Validate an ``Authorization`` header value.

        Raises
        - ``Unauthenticated`` for a missing/malformed/expired/not-yet-valid token
        - ``Forbidden`` when the signature does not match the shared secret
        """
        token = self._extract_bearer_token(authorization)
        payload = self._decode(token)

        subject = next(
            (str(payload[claim]) for claim in IDENTITY_CLAIMS if payload.get(claim)),
            None,
        )
        if subject is None:
            raise Unauthenticated("Token carries no caller identity", reason="malformed_token")

        issued_at = payload.get("iat")
        return AuthContext(
            subject=subject,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            issued_at=(
                datetime.fromtimestamp(issued_at, tz=timezone.utc)
                if isinstance(issued_at, (int, float)) else None
            ),
            claims=payload,
        )

    def _extract_bearer_token(self, authorization: Optional[str]) -> str:
        if authorization is None or not authorization.strip():
            raise Unauthenticated("Missing bearer token", reason="missing_token")

        parts = authorization.strip().split()
        if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
            raise Unauthenticated(
                "Authorization header must be 'Bearer <token>'",
                reason="malformed_token",
            )
        return parts[1]

    def _decode(self, token: str) -> Dict[str, Any]:
        # PyJWT verifies the signature before any time-based claim, so a
        # token signed with the wrong secret is Forbidden even when expired.
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                leeway=self.leeway_seconds,
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("Token has expired", reason="token_expired")
        except jwt.ImmatureSignatureError:
            raise Unauthenticated("Token is not yet valid", reason="token_not_yet_valid")
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError):
            logger.warning("Rejected token with invalid signature")
            raise Forbidden("Token signature does not match", reason="invalid_signature")
        except jwt.InvalidTokenError as e:
            raise Unauthenticated(
                f"Could not validate credentials: {e}",
                reason="malformed_token",
            )


def create_auth_dependency(gate_provider: Callable[[Request], AuthenticationGate]) -> Callable:
    """Create a FastAPI dependency that authenticates the caller.

    Dependencies run before request-body validation, so a caller without a
    valid credential gets ``Unauthenticated``/``Forbidden`` and never sees a
    schema error. ``HTTPBearer`` only declares the scheme for OpenAPI; the gate
    parses the raw header itself so every rejection keeps its exact reason.
    """
    bearer_scheme = HTTPBearer(auto_error=False)

    def require_caller(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    ) -> AuthContext:
        """FastAPI dependency returning the validated ``AuthContext``."""
        return gate_provider(request).authenticate(request.headers.get("Authorization"))

    return require_caller
