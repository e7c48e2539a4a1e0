"""Shared fixtures for gateway tests."""

import pytest

from libs.common.auth import AuthenticationGate
from libs.common.config import SearchGatewayConfig
from service_search_gateway.app.registry.index_registry import IndexRegistry
from service_search_gateway.app.translation.query_translator import QueryTranslator

from .fakes import INDEX_IDS, TEST_SECRET


@pytest.fixture
def config():
    """Gateway configuration with every required value set."""
    return SearchGatewayConfig(
        search_jwt_secret=TEST_SECRET,
        search_datasets_index_id=INDEX_IDS["datasets"],
        search_publishers_index_id=INDEX_IDS["publishers"],
        search_regions_index_id=INDEX_IDS["regions"],
        search_max_page_size=50,
        search_default_page_size=10,
        search_max_result_window=1000,
        search_domain_timeout_seconds=0.5,
        search_log_format="console",
    )


@pytest.fixture
def gate(config):
    return AuthenticationGate.from_config(config)


@pytest.fixture
def token(gate):
    """A valid bearer header value."""
    return f"Bearer {gate.issue_token('alice')}"


@pytest.fixture
def registry(config):
    return IndexRegistry.from_config(config)


@pytest.fixture
def translator(config, registry):
    return QueryTranslator.from_config(config, registry)
