"""Configuration management for the search gateway.

Centralizes environment-driven configuration on top of
``pydantic_settings.BaseSettings`` so values can come from environment
variables, a ``.env`` file, or defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover the environment variables the gateway reads
- ``SearchGatewayConfig`` is frozen: built once at startup, read-only after

Usage
- ``config = SearchGatewayConfig()`` in the service entrypoint
- Or select dynamically: ``config = get_config("search-gateway")``
"""

from typing import Dict, List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration shared by every gateway process.

    Parameters are read from the process environment using the upper-cased
    field name (``search_log_level`` -> ``SEARCH_LOG_LEVEL``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    search_env: str = Field(default="local")

    # Logging
    search_log_level: str = Field(default="INFO")
    search_log_format: str = Field(default="json")


class SearchGatewayConfig(BaseConfig):
    """Configuration for the federated search gateway.

    Frozen after construction so it can be shared across concurrent requests
    without synchronization.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # HTTP
    search_listen_port: int = Field(default=6969, gt=0, lt=65536)

    # Backend cluster
    search_es_host: str = Field(default="localhost")
    search_es_port: int = Field(default=9200, gt=0, lt=65536)
    search_es_scheme: str = Field(default="http")
    search_es_username: Optional[str] = Field(default=None)
    search_es_password: Optional[str] = Field(default=None)
    search_es_verify_certs: bool = Field(default=False)

    # Logical domain -> physical index id
    search_datasets_index_id: Optional[str] = Field(default=None)
    search_regions_index_id: Optional[str] = Field(default=None)
    search_publishers_index_id: Optional[str] = Field(default=None)

    # Security
    search_jwt_secret: str = Field(
        default="",
        validation_alias=AliasChoices("search_jwt_secret", "jwt_secret"),
    )
    search_jwt_algorithm: str = Field(default="HS256")
    search_jwt_leeway_seconds: int = Field(default=0, ge=0)

    # Pagination and fan-out
    search_max_page_size: int = Field(default=100, gt=0)
    search_default_page_size: int = Field(default=10, gt=0)
    search_max_result_window: int = Field(default=10000, gt=0)
    search_domain_timeout_seconds: float = Field(default=5.0, gt=0)

    @property
    def backend_hosts(self) -> List[str]:
        """Backend URLs in the form the OpenSearch client expects."""
        return [f"{self.search_es_scheme}://{self.search_es_host}:{self.search_es_port}"]

    def index_id_mapping(self) -> Dict[str, Optional[str]]:
        """Configured logical domain name -> physical index id."""
        return {
            "datasets": self.search_datasets_index_id,
            "regions": self.search_regions_index_id,
            "publishers": self.search_publishers_index_id,
        }


def get_config(service_name: str) -> BaseConfig:
    """Get configuration for a specific service.

    Unknown names fall back to ``BaseConfig`` so tooling that only needs
    logging settings keeps working.
    """
    config_map = {
        "search-gateway": SearchGatewayConfig,
    }

    config_class = config_map.get(service_name, BaseConfig)
    return config_class()
