"""Search gateway application package.

Layout:
- ``api``: HTTP endpoint for federated search.
- ``registry``: logical domain -> physical index resolution.
- ``translation``: generic request -> per-domain backend query.
- ``federation``: concurrent fan-out and failure policy.
- ``ranking``: merge and rank across domains.
- ``runtime``: service-local metrics helpers.
"""
