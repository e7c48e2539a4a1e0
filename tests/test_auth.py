"""Tests for bearer token authentication."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from libs.common.auth import AuthenticationGate
from libs.common.errors import ConfigurationError, Forbidden, Unauthenticated

from .fakes import TEST_SECRET


def _now():
    return datetime.now(timezone.utc)


def test_valid_token_yields_auth_context(gate):
    context = gate.authenticate(f"Bearer {gate.issue_token('alice')}")
    assert context.subject == "alice"
    assert context.expires_at > _now()
    assert context.issued_at is not None
    assert not context.is_service


def test_scheme_is_case_insensitive(gate):
    context = gate.authenticate(f"bearer {gate.issue_token('alice')}")
    assert context.subject == "alice"


def test_missing_token_is_unauthenticated(gate):
    for header in (None, "", "   "):
        with pytest.raises(Unauthenticated) as exc_info:
            gate.authenticate(header)
        assert exc_info.value.reason == "missing_token"
        assert exc_info.value.status_code == 401


@pytest.mark.parametrize("header", [
    "Basic dXNlcjpwYXNz",
    "Bearer",
    "Bearer a b",
    "Bearer not-a-jwt",
])
def test_malformed_header_is_unauthenticated(gate, header):
    with pytest.raises(Unauthenticated) as exc_info:
        gate.authenticate(header)
    assert exc_info.value.reason == "malformed_token"


def test_expired_token_has_distinct_reason(gate):
    token = gate.issue_token("alice", ttl=timedelta(seconds=-30))
    with pytest.raises(Unauthenticated) as exc_info:
        gate.authenticate(f"Bearer {token}")
    assert exc_info.value.reason == "token_expired"


def test_wrong_secret_is_forbidden(gate):
    other = AuthenticationGate("a-different-secret-held-by-someone-else")
    with pytest.raises(Forbidden) as exc_info:
        gate.authenticate(f"Bearer {other.issue_token('mallory')}")
    assert exc_info.value.reason == "invalid_signature"
    assert exc_info.value.status_code == 403


def test_expired_token_with_wrong_secret_is_forbidden(gate):
    """Signature is checked before expiry."""
    other = AuthenticationGate("a-different-secret-held-by-someone-else")
    token = other.issue_token("mallory", ttl=timedelta(seconds=-30))
    with pytest.raises(Forbidden):
        gate.authenticate(f"Bearer {token}")


def test_disallowed_algorithm_is_forbidden(gate):
    token = jwt.encode(
        {"sub": "alice", "exp": _now() + timedelta(minutes=5)},
        TEST_SECRET,
        algorithm="HS512",
    )
    with pytest.raises(Forbidden):
        gate.authenticate(f"Bearer {token}")


def test_token_without_expiry_is_malformed(gate):
    token = jwt.encode({"sub": "alice"}, TEST_SECRET, algorithm="HS256")
    with pytest.raises(Unauthenticated) as exc_info:
        gate.authenticate(f"Bearer {token}")
    assert exc_info.value.reason == "malformed_token"


def test_token_not_yet_valid(gate):
    token = jwt.encode(
        {"sub": "alice", "exp": _now() + timedelta(hours=2), "nbf": _now() + timedelta(hours=1)},
        TEST_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(Unauthenticated) as exc_info:
        gate.authenticate(f"Bearer {token}")
    assert exc_info.value.reason == "token_not_yet_valid"


def test_leeway_tolerates_small_clock_skew():
    gate = AuthenticationGate(TEST_SECRET, leeway_seconds=60)
    token = gate.issue_token("alice", ttl=timedelta(seconds=-5))
    assert gate.authenticate(f"Bearer {token}").subject == "alice"


def test_session_token_identity_from_user_id(gate):
    token = jwt.encode(
        {"userId": "user-42", "exp": _now() + timedelta(minutes=5)},
        TEST_SECRET,
        algorithm="HS256",
    )
    assert gate.authenticate(f"Bearer {token}").subject == "user-42"


def test_token_without_identity_is_malformed(gate):
    token = jwt.encode({"exp": _now() + timedelta(minutes=5)}, TEST_SECRET, algorithm="HS256")
    with pytest.raises(Unauthenticated) as exc_info:
        gate.authenticate(f"Bearer {token}")
    assert exc_info.value.reason == "malformed_token"


def test_service_token(gate):
    context = gate.authenticate(f"Bearer {gate.issue_service_token('indexer')}")
    assert context.subject == "indexer"
    assert context.is_service
    assert context.expires_at - _now() > timedelta(hours=23)


def test_validation_is_pure(gate):
    """The same token validates to the same identity every time."""
    header = f"Bearer {gate.issue_token('alice')}"
    assert gate.authenticate(header) == gate.authenticate(header)


def test_empty_secret_fails_at_construction():
    with pytest.raises(ConfigurationError):
        AuthenticationGate("")
