"""Shared libraries for the search gateway.

Subpackages:
- ``libs.common``: configuration, logging, authentication, errors, metrics.
- ``libs.search_backend``: backend value types, interface, and the
  OpenSearch implementation.

Notes:
- Avoid request-routing logic here; keep modules cohesive and reusable.
"""
