"""Logical domain -> physical index resolution.

The registry is built once at startup from configuration and never mutated,
so request handlers read it concurrently without locking.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from libs.common.errors import ConfigurationError, UnknownDomain
from libs.search_backend.models import Domain

logger = structlog.get_logger("search_gateway.registry")


def _normalize_name(name: str) -> str:
    return name.strip().lower()


class IndexRegistry:
    """Resolves logical search domains to physical index identifiers."""

    def __init__(self, index_ids: Mapping[str, Optional[str]]):
        """Validate and freeze the mapping.

        Raises ``ConfigurationError`` when a configured name is not a known
        domain or maps to a missing/blank index id.
        """
        if not index_ids:
            raise ConfigurationError("At least one search domain must be configured")

        resolved: Dict[Domain, str] = {}
        for name, index_id in index_ids.items():
            try:
                domain = Domain(_normalize_name(name))
            except ValueError:
                raise ConfigurationError(f"Unsupported search domain in configuration: {name!r}")
            if index_id is None or not str(index_id).strip():
                raise ConfigurationError(f"Search domain {domain.value!r} has no physical index id")
            resolved[domain] = str(index_id).strip()

        ordered = sorted(resolved, key=lambda domain: domain.priority)
        self._index_ids = MappingProxyType({domain: resolved[domain] for domain in ordered})
        self._domains: Tuple[Domain, ...] = tuple(ordered)

        logger.info(
            "Index registry initialized",
            domains={domain.value: index_id for domain, index_id in self._index_ids.items()}
        )

    @classmethod
    def from_config(cls, config) -> "IndexRegistry":
        """Create a registry from ``SearchGatewayConfig``."""
        return cls(config.index_id_mapping())

    @property
    def domains(self) -> Tuple[Domain, ...]:
        """Registered domains in merge priority order."""
        return self._domains

    def names(self) -> List[str]:
        return [domain.value for domain in self._domains]

    def resolve_domain(self, name: str) -> Domain:
        """Map a client-supplied name to a registered ``Domain``."""
        try:
            domain = Domain(_normalize_name(name))
        except ValueError:
            raise UnknownDomain([name])
        if domain not in self._index_ids:
            raise UnknownDomain([name])
        return domain

    def resolve(self, name: str) -> str:
        """Physical index id for a logical domain name."""
        return self._index_ids[self.resolve_domain(name)]

    def index_id(self, domain: Domain) -> str:
        return self._index_ids[domain]

    def resolve_all(self, names: Iterable[str]) -> Tuple[Domain, ...]:
        """Resolve many names at once, reporting every unknown one.

        Duplicates collapse; the result is in merge priority order.
        """
        unknown = []
        found = set()
        for name in names:
            try:
                found.add(self.resolve_domain(name))
            except UnknownDomain:
                unknown.append(name)
        if unknown:
            raise UnknownDomain(unknown)
        return tuple(domain for domain in self._domains if domain in found)
