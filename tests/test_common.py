"""Tests for common utilities."""

import pytest
from pydantic import ValidationError
from prometheus_client import CollectorRegistry

from libs.common.config import BaseConfig, SearchGatewayConfig, get_config
from libs.common.errors import AllDomainsFailed, InvalidQuery, UnknownDomain
from libs.common.logging import REDACTED, configure_logging, redact_credentials
from libs.common.metrics import MetricsCollector
from libs.search_backend.models import Domain
from service_search_gateway.app.models import DomainFailure


def test_config_loading():
    """Test configuration defaults."""
    config = BaseConfig()
    assert config.search_env == "local"
    assert config.search_log_level == "INFO"
    assert config.search_log_format == "json"


def test_search_gateway_config_defaults(monkeypatch):
    """Gateway listens on 6969 and expects the backend on 9200 by default."""
    monkeypatch.delenv("SEARCH_ES_PORT", raising=False)
    monkeypatch.delenv("SEARCH_LISTEN_PORT", raising=False)
    config = SearchGatewayConfig()
    assert config.search_listen_port == 6969
    assert config.search_es_host == "localhost"
    assert config.search_es_port == 9200
    assert config.backend_hosts == ["http://localhost:9200"]
    assert config.search_max_page_size == 100


def test_config_reads_environment(monkeypatch):
    """Settings come from upper-cased env vars, the secret also from JWT_SECRET."""
    monkeypatch.setenv("SEARCH_DATASETS_INDEX_ID", "datasets-v9")
    monkeypatch.setenv("SEARCH_ES_HOST", "es.internal")
    monkeypatch.delenv("SEARCH_JWT_SECRET", raising=False)
    monkeypatch.setenv("JWT_SECRET", "from-env")

    config = SearchGatewayConfig()
    assert config.search_datasets_index_id == "datasets-v9"
    assert config.search_jwt_secret == "from-env"
    assert config.backend_hosts == ["http://es.internal:9200"]
    assert config.index_id_mapping()["datasets"] == "datasets-v9"


def test_config_is_frozen(config):
    """Configuration is read-only after construction."""
    with pytest.raises(ValidationError):
        config.search_max_page_size = 5


def test_config_rejects_invalid_values():
    with pytest.raises(ValidationError):
        SearchGatewayConfig(search_max_page_size=0)


def test_get_config():
    assert isinstance(get_config("search-gateway"), SearchGatewayConfig)
    assert type(get_config("unknown")) is BaseConfig


def test_logging_configuration():
    """Test logging configuration."""
    # This should not raise an exception
    configure_logging("test-service", "INFO", "json")
    configure_logging("test-service", "debug", "console")


def test_credentials_are_redacted_from_log_events():
    event = redact_credentials(None, "info", {
        "event": "Request rejected",
        "Authorization": "Bearer abc.def.ghi",
        "token": "abc.def.ghi",
        "subject": "alice",
        "password": None,
    })

    assert event["Authorization"] == REDACTED
    assert event["token"] == REDACTED
    assert event["subject"] == "alice"
    assert event["password"] is None


def test_metrics_collector():
    """Test metrics collector."""
    collector = MetricsCollector("test-service", registry=CollectorRegistry())
    assert collector.service_name == "test-service"

    collector.record_http_request("POST", "/v0/search", 200, 0.1)
    collector.record_search("partial", 2, 0.05)
    collector.record_domain_query("datasets", "ok", 0.02)
    collector.record_domain_query("regions", "BackendTimeout", 0.5)

    metrics = collector.get_metrics()
    assert isinstance(metrics, str)
    assert "http_requests_total" in metrics
    assert 'search_domain_queries_total{domain="regions",outcome="BackendTimeout"} 1.0' in metrics
    assert "search_partial_failures_total 1.0" in metrics


def test_error_bodies_carry_stable_codes():
    """Errors render with code, reason and the offending input."""
    unknown = UnknownDomain(["books", "maps"])
    assert unknown.to_dict()["code"] == "UnknownDomain"
    assert unknown.to_dict()["domains"] == ["books", "maps"]
    assert unknown.status_code == 400

    invalid = InvalidQuery("issued", "expected an ISO-8601 date")
    assert invalid.to_dict()["field"] == "issued"
    assert "issued" in invalid.message

    failed = AllDomainsFailed([DomainFailure(Domain.REGIONS, "BackendTimeout", "timeout")])
    assert failed.status_code == 503
    assert failed.to_dict()["failures"] == [
        {"domain": "regions", "code": "BackendTimeout", "reason": "timeout"}
    ]
