"""Search backend adapters.

Primary components:
- ``models``: ``Domain``, ``DomainQuery``, ``FilterClause``, ``Hit``,
  ``BackendResponse`` value types.
- ``base``: abstract ``SearchBackend`` interface.
- ``opensearch``: ``AsyncOpenSearch``-backed implementation.
"""
