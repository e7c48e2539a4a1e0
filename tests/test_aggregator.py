"""Tests for merging and ranking per-domain results."""

import pytest

from libs.common.errors import InternalError
from libs.search_backend.models import BackendResponse, Domain, Hit
from service_search_gateway.app.models import DomainFailure, Pagination
from service_search_gateway.app.ranking.aggregator import ResultAggregator

from .fakes import make_response


@pytest.fixture
def aggregator():
    return ResultAggregator()


def _scores(result):
    return [hit.score for hit in result.hits]


def test_water_example(aggregator):
    """Eight dataset hits and five region hits trimmed to a page of ten."""
    per_domain = {
        Domain.DATASETS: make_response(Domain.DATASETS, [9.1, 8.0, 6.9, 5.8, 4.7, 3.6, 2.5, 1.0]),
        Domain.REGIONS: make_response(Domain.REGIONS, [7.5, 6.1, 4.8, 3.4, 2.0]),
    }

    result = aggregator.merge(per_domain, Pagination(offset=0, limit=10))

    assert len(result.hits) == 10
    assert _scores(result) == sorted(_scores(result), reverse=True)
    ids = {hit.id for hit in result.hits}
    assert "datasets-7" not in ids
    assert "regions-4" not in ids
    assert result.totals == {Domain.DATASETS: 8, Domain.REGIONS: 5}
    assert result.total == 13
    assert not result.is_partial


def test_equal_scores_break_ties_by_domain_priority(aggregator):
    per_domain = {
        Domain.REGIONS: make_response(Domain.REGIONS, [5.0]),
        Domain.PUBLISHERS: make_response(Domain.PUBLISHERS, [5.0]),
        Domain.DATASETS: make_response(Domain.DATASETS, [5.0]),
    }

    result = aggregator.merge(per_domain, Pagination(offset=0, limit=10))

    assert [hit.domain for hit in result.hits] == [
        Domain.DATASETS,
        Domain.PUBLISHERS,
        Domain.REGIONS,
    ]


def test_equal_scores_within_domain_keep_backend_rank(aggregator):
    per_domain = {Domain.DATASETS: make_response(Domain.DATASETS, [3.0, 3.0, 3.0])}

    result = aggregator.merge(per_domain, Pagination(offset=0, limit=10))

    assert [hit.id for hit in result.hits] == ["datasets-0", "datasets-1", "datasets-2"]


def test_offset_slices_merged_sequence(aggregator):
    per_domain = {
        Domain.DATASETS: make_response(Domain.DATASETS, [10.0, 8.0, 6.0]),
        Domain.REGIONS: make_response(Domain.REGIONS, [9.0, 7.0, 5.0]),
    }

    first = aggregator.merge(per_domain, Pagination(offset=0, limit=2))
    second = aggregator.merge(per_domain, Pagination(offset=2, limit=2))
    third = aggregator.merge(per_domain, Pagination(offset=4, limit=2))

    assert _scores(first) == [10.0, 9.0]
    assert _scores(second) == [8.0, 7.0]
    assert _scores(third) == [6.0, 5.0]


def test_offset_past_end_yields_empty_page(aggregator):
    per_domain = {Domain.DATASETS: make_response(Domain.DATASETS, [1.0], total=40)}

    result = aggregator.merge(per_domain, Pagination(offset=25, limit=10))

    assert result.hits == ()
    assert result.totals == {Domain.DATASETS: 40}


def test_empty_domain_is_reported_with_zero_total(aggregator):
    per_domain = {
        Domain.DATASETS: make_response(Domain.DATASETS, [2.0]),
        Domain.PUBLISHERS: BackendResponse(hits=(), total=0),
    }

    result = aggregator.merge(per_domain, Pagination(offset=0, limit=10))

    assert len(result.hits) == 1
    assert result.totals[Domain.PUBLISHERS] == 0


def test_same_id_in_two_domains_is_not_merged(aggregator):
    per_domain = {
        Domain.DATASETS: make_response(Domain.DATASETS, [1.0], prefix="shared"),
        Domain.REGIONS: make_response(Domain.REGIONS, [1.0], prefix="shared"),
    }

    result = aggregator.merge(per_domain, Pagination(offset=0, limit=10))

    assert [(hit.domain, hit.id) for hit in result.hits] == [
        (Domain.DATASETS, "shared-0"),
        (Domain.REGIONS, "shared-0"),
    ]


def test_failures_are_carried_through(aggregator):
    per_domain = {Domain.DATASETS: make_response(Domain.DATASETS, [1.0])}
    failure = DomainFailure(domain=Domain.REGIONS, code="BackendTimeout", reason="timeout")

    result = aggregator.merge(per_domain, Pagination(offset=0, limit=10), [failure])

    assert result.is_partial
    assert result.failures == (failure,)
    assert Domain.REGIONS not in result.totals


def test_domain_with_hits_and_failure_is_a_bug(aggregator):
    per_domain = {Domain.DATASETS: make_response(Domain.DATASETS, [1.0])}
    failure = DomainFailure(domain=Domain.DATASETS, code="BackendUnavailable", reason="x")

    with pytest.raises(InternalError) as exc_info:
        aggregator.merge(per_domain, Pagination(offset=0, limit=10), [failure])
    assert exc_info.value.reason == "aggregation_invariant"


def test_hit_under_wrong_domain_is_a_bug(aggregator):
    per_domain = {Domain.DATASETS: make_response(Domain.REGIONS, [1.0])}

    with pytest.raises(InternalError):
        aggregator.merge(per_domain, Pagination(offset=0, limit=10))


def test_non_finite_score_is_a_bug(aggregator):
    hit = Hit(domain=Domain.DATASETS, id="d1", score=float("nan"))
    per_domain = {Domain.DATASETS: BackendResponse(hits=(hit,), total=1)}

    with pytest.raises(InternalError):
        aggregator.merge(per_domain, Pagination(offset=0, limit=10))
