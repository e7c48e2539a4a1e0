"""Translation of generic search requests into per-domain backend queries.

The same filter name can live under a different backend field in each index,
and some filters mean nothing for some domains (a ``region`` filter on
``publishers``). Those are dropped for that domain instead of being forwarded,
because the backend would reject an unmapped field.

Numeric and date filters are normalized to inclusive ``[gte, lte]`` ranges.
Accepted forms for a range filter value:

- scalar: exact match, ``lower == upper``
- ``[lower, upper]``: either side may be ``null``
- mapping with ``gte``/``lte``, ``from``/``to`` or ``min``/``max``
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from libs.common.errors import InvalidQuery
from libs.search_backend.models import Domain, DomainQuery, FilterClause

from ..models import SearchRequest
from ..registry.index_registry import IndexRegistry

logger = structlog.get_logger("search_gateway.translator")

KEYWORD = "keyword"
NUMERIC = "numeric"
DATE = "date"

LOWER_KEYS = ("gte", "from", "min")
UPPER_KEYS = ("lte", "to", "max")

MATCH_ALL_TEXT = "*"


@dataclass(frozen=True)
class FilterSpec:
    """A client-facing filter and the backend field it maps to per domain."""

    kind: str
    fields: Mapping[Domain, str]


FILTER_SPECS: Dict[str, FilterSpec] = {
    "publisher": FilterSpec(KEYWORD, {
        Domain.DATASETS: "publisher.identifier",
        Domain.PUBLISHERS: "identifier",
    }),
    "format": FilterSpec(KEYWORD, {
        Domain.DATASETS: "distributions.format.keyword",
    }),
    "region": FilterSpec(KEYWORD, {
        Domain.DATASETS: "spatial.regionId",
        Domain.REGIONS: "regionId",
    }),
    "regionType": FilterSpec(KEYWORD, {
        Domain.DATASETS: "spatial.regionType",
        Domain.REGIONS: "regionType",
    }),
    "issued": FilterSpec(DATE, {
        Domain.DATASETS: "issued",
    }),
    "modified": FilterSpec(DATE, {
        Domain.DATASETS: "modified",
    }),
    "quality": FilterSpec(NUMERIC, {
        Domain.DATASETS: "quality",
    }),
    "datasetCount": FilterSpec(NUMERIC, {
        Domain.PUBLISHERS: "datasetCount",
    }),
}

TEXT_FIELDS: Dict[Domain, Tuple[str, ...]] = {
    Domain.DATASETS: ("title^3", "keywords^2", "description", "publisher.name"),
    Domain.PUBLISHERS: ("name^3", "description"),
    Domain.REGIONS: ("regionName^3", "regionShortName", "regionId"),
}


@dataclass(frozen=True)
class _NormalizedFilter:
    name: str
    spec: FilterSpec
    values: Tuple[Any, ...] = ()
    gte: Optional[Any] = None
    lte: Optional[Any] = None

    def clause_for(self, domain: Domain) -> Optional[FilterClause]:
        path = self.spec.fields.get(domain)
        if path is None:
            return None
        return FilterClause(path=path, values=self.values, gte=self.gte, lte=self.lte)


class QueryTranslator:
    """Builds one immutable ``DomainQuery`` per targeted domain."""

    def __init__(
        self,
        registry: IndexRegistry,
        max_result_window: int = 10000,
        default_page_size: int = 10,
        filter_specs: Optional[Mapping[str, FilterSpec]] = None,
    ):
        self.registry = registry
        self.max_result_window = max_result_window
        self.default_page_size = default_page_size
        self.filter_specs = dict(filter_specs or FILTER_SPECS)

    @classmethod
    def from_config(cls, config, registry: IndexRegistry) -> "QueryTranslator":
        return cls(
            registry,
            max_result_window=config.search_max_result_window,
            default_page_size=config.search_default_page_size,
        )

    def translate(self, request: SearchRequest, domain: Domain) -> DomainQuery:
        """Translate ``request`` for one domain.

        Raises ``InvalidQuery`` naming the field for any malformed filter,
        whether or not this domain would use it.
        """
        return self._build(request, domain, self.normalize_filters(request.filters))

    def translate_all(
        self,
        request: SearchRequest,
        domains: Sequence[Domain],
    ) -> List[DomainQuery]:
        """Translate ``request`` for every domain, validating filters once."""
        normalized = self.normalize_filters(request.filters)
        return [self._build(request, domain, normalized) for domain in domains]

    def _build(
        self,
        request: SearchRequest,
        domain: Domain,
        normalized: Sequence[_NormalizedFilter],
    ) -> DomainQuery:
        clauses = []
        dropped = []
        for item in normalized:
            clause = item.clause_for(domain)
            if clause is None:
                dropped.append(item.name)
            else:
                clauses.append(clause)

        if dropped:
            logger.debug(
                "Filters not applicable to domain dropped",
                domain=domain.value,
                filters=dropped
            )

        return DomainQuery(
            domain=domain,
            index_id=self.registry.index_id(domain),
            size=self.fetch_size(request),
            text=self.normalize_text(request.text),
            text_fields=TEXT_FIELDS[domain],
            filters=tuple(clauses),
        )

    def fetch_size(self, request: SearchRequest) -> int:
        """Per-domain over-fetch: enough candidates to re-rank the merged page.

        Every domain asks for ``offset + limit`` items from rank 0, capped by
        the backend result window.
        """
        limit = request.limit if request.limit is not None else self.default_page_size
        return min(request.offset + limit, self.max_result_window)

    @staticmethod
    def normalize_text(text: Optional[str]) -> Optional[str]:
        if text is None:
            return None
        text = text.strip()
        if not text or text == MATCH_ALL_TEXT:
            return None
        return text

    def normalize_filters(self, filters: Optional[Mapping[str, Any]]) -> List[_NormalizedFilter]:
        """Validate every filter and normalize its value."""
        normalized = []
        for name, value in sorted((filters or {}).items()):
            if value is None:
                continue
            spec = self.filter_specs.get(name)
            if spec is None:
                raise InvalidQuery(name, "unknown filter")
            if spec.kind == KEYWORD:
                normalized.append(_NormalizedFilter(name, spec, values=_keyword_values(name, value)))
            else:
                gte, lte = _range_bounds(name, spec.kind, value)
                normalized.append(_NormalizedFilter(name, spec, gte=gte, lte=lte))
        return normalized


def _keyword_values(name: str, value: Any) -> Tuple[Any, ...]:
    items = list(value) if isinstance(value, (list, tuple)) else [value]
    if not items:
        raise InvalidQuery(name, "expected at least one value")

    values = []
    for item in items:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            raise InvalidQuery(name, f"unsupported value {item!r}")
        if isinstance(item, float) and not math.isfinite(item):
            raise InvalidQuery(name, f"not a finite number: {item!r}")
        if isinstance(item, str):
            item = item.strip()
            if not item:
                raise InvalidQuery(name, "blank value")
        values.append(item)
    return tuple(dict.fromkeys(values))


def _range_bounds(name: str, kind: str, value: Any) -> Tuple[Optional[Any], Optional[Any]]:
    """Split a range filter value into inclusive lower/upper bounds."""
    if isinstance(value, Mapping):
        unknown = set(value) - set(LOWER_KEYS) - set(UPPER_KEYS)
        if unknown:
            raise InvalidQuery(name, f"unsupported range keys {sorted(unknown)}")
        lower_raw = _single_bound(name, value, LOWER_KEYS)
        upper_raw = _single_bound(name, value, UPPER_KEYS)
    elif isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise InvalidQuery(name, "range list must have exactly two elements")
        lower_raw, upper_raw = value
    else:
        lower_raw = upper_raw = value

    if lower_raw is None and upper_raw is None:
        raise InvalidQuery(name, "range needs at least one bound")

    parse = _parse_number if kind == NUMERIC else _parse_date
    lower = parse(name, lower_raw) if lower_raw is not None else None
    upper = parse(name, upper_raw) if upper_raw is not None else None

    if lower is not None and upper is not None:
        if kind == NUMERIC:
            out_of_order = lower > upper
        else:
            out_of_order = _date_key(lower, upper_bound=False) > _date_key(upper, upper_bound=True)
        if out_of_order:
            raise InvalidQuery(name, "lower bound is greater than upper bound")

    if kind == NUMERIC:
        return lower, upper
    return (
        _render_date(lower) if lower is not None else None,
        _render_date(upper) if upper is not None else None,
    )


def _single_bound(name: str, value: Mapping[str, Any], keys: Sequence[str]) -> Optional[Any]:
    present = [key for key in keys if value.get(key) is not None]
    if len(present) > 1:
        raise InvalidQuery(name, f"conflicting bounds {present}")
    return value[present[0]] if present else None


def _parse_number(name: str, raw: Any) -> float:
    if isinstance(raw, bool):
        raise InvalidQuery(name, f"not a number: {raw!r}")
    if isinstance(raw, (int, float)):
        number = raw
    elif isinstance(raw, str):
        try:
            number = float(raw.strip())
        except ValueError:
            raise InvalidQuery(name, f"not a number: {raw!r}")
    else:
        raise InvalidQuery(name, f"not a number: {raw!r}")
    if isinstance(number, float) and not math.isfinite(number):
        raise InvalidQuery(name, f"not a finite number: {raw!r}")
    return number


def _parse_date(name: str, raw: Any):
    if not isinstance(raw, str):
        raise InvalidQuery(name, f"expected an ISO-8601 date, got {raw!r}")
    text = raw.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidQuery(name, f"expected an ISO-8601 date, got {raw!r}")


def _date_key(value, upper_bound: bool) -> datetime:
    # A bare date covers its whole day, so it compares as midnight when used
    # as a lower bound and as the last instant of the day as an upper bound.
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max if upper_bound else time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _render_date(value) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    # Day rounding: gte -> start of day, lte -> end of day
    return f"{value.isoformat()}||/d"
