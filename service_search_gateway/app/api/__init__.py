"""API subpackage for the search gateway.

The router exposes the federated search endpoint. The transport layer stays
thin and delegates to ``SearchGateway``.
"""
