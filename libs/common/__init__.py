"""Common utilities shared across the gateway.

Includes:
- ``config``: pydantic-settings based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``auth``: shared-secret JWT validation and issuance.
- ``errors``: the gateway's error taxonomy with stable codes.
- ``metrics``: Prometheus metrics helpers.

Import pattern:
- from libs.common.config import SearchGatewayConfig
- from libs.common.logging import configure_logging
"""
