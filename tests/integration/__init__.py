"""Integration tests against a live OpenSearch cluster.

Run with ``pytest -m integration``; the cluster location comes from the usual
``SEARCH_ES_*`` environment variables. Tests skip when it is unreachable.
"""
