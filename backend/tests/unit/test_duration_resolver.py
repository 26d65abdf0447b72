"""
Unit tests for DurationResolver and SelectionTracker.
"""

import pytest
from sqlalchemy.exc import OperationalError

from salon_booking.core.exceptions import (
    DurationLookupError,
    RecordNotFoundError,
    UnsupportedCombinationError,
    ValidationError,
)
from salon_booking.services.duration_resolver import (
    DurationStatus,
    SelectionKey,
    SelectionTracker,
)
from tests.factories.repository_factories import (
    make_resource,
    make_rule,
    make_subject,
    make_subject_type,
)


@pytest.fixture
def known_pair(mock_subject_repo, mock_resource_repo):
    mock_subject_repo.get_subject_type.return_value = make_subject_type()
    mock_resource_repo.get_by_id.return_value = make_resource()


@pytest.mark.unit
@pytest.mark.services
class TestResolveDuration:
    def test_supported_rule_returns_minutes(self, duration_resolver, mock_rule_repo, known_pair):
        """A supported rule yields its minutes and the selection key."""
        mock_rule_repo.get_rule.return_value = make_rule(duration_minutes=45)

        result = duration_resolver.resolve_duration(10, 1)

        assert result.status is DurationStatus.SUPPORTED
        assert result.minutes == 45
        assert result.selection_key == SelectionKey(10, 1)
        assert result.require_minutes() == 45

    def test_rule_without_minutes_uses_station_base(
        self, duration_resolver, mock_rule_repo, mock_resource_repo, known_pair
    ):
        """A supported rule with no explicit minutes falls back to the station base."""
        mock_resource_repo.get_by_id.return_value = make_resource(base_duration_minutes=75)
        mock_rule_repo.get_rule.return_value = make_rule(duration_minutes=None)

        assert duration_resolver.resolve_duration(10, 1).minutes == 75

    @pytest.mark.parametrize(
        "rule",
        [
            None,
            make_rule(is_supported=False, duration_minutes=None),
            make_rule(is_active=False),
        ],
        ids=["missing", "tombstone", "inactive"],
    )
    def test_unsupported_outcomes(self, duration_resolver, mock_rule_repo, known_pair, rule):
        """Missing, tombstoned and inactive rules are unsupported, never defaulted."""
        mock_rule_repo.get_rule.return_value = rule

        result = duration_resolver.resolve_duration(10, 1)

        assert result.status is DurationStatus.UNSUPPORTED
        assert result.minutes is None
        assert result.reason
        with pytest.raises(UnsupportedCombinationError):
            result.require_minutes()

    def test_store_failure_is_error_result(self, duration_resolver, mock_rule_repo, known_pair):
        """A read failure yields a retryable error result."""
        mock_rule_repo.get_rule.side_effect = OperationalError("SELECT", {}, Exception("x"))

        result = duration_resolver.resolve_duration(10, 1)

        assert result.status is DurationStatus.ERROR
        assert result.minutes is None
        with pytest.raises(DurationLookupError) as exc_info:
            result.require_minutes()
        assert exc_info.value.retryable is True

    def test_unknown_subject_type(self, duration_resolver, mock_resource_repo):
        """Unknown breed IDs are rejected."""
        mock_resource_repo.get_by_id.return_value = make_resource()
        with pytest.raises(RecordNotFoundError, match="Subject type 10 not found"):
            duration_resolver.resolve_duration(10, 1)

    def test_inactive_resource(self, duration_resolver, mock_subject_repo, mock_resource_repo):
        """Inactive stations are a validation error."""
        mock_subject_repo.get_subject_type.return_value = make_subject_type()
        mock_resource_repo.get_by_id.return_value = make_resource(is_active=False)
        with pytest.raises(ValidationError, match="is not active"):
            duration_resolver.resolve_duration(10, 1)

    def test_remote_only_hides_staff_only_rules(
        self, duration_resolver, mock_rule_repo, known_pair
    ):
        """Rules not offered online are unsupported for remote lookups only."""
        mock_rule_repo.get_rule.return_value = make_rule(remote_booking_allowed=False)

        assert duration_resolver.resolve_duration(10, 1).is_supported
        assert not duration_resolver.resolve_duration(10, 1, remote_only=True).is_supported

    def test_subject_without_breed_is_unsupported(self, duration_resolver, mock_subject_repo):
        """A dog with no breed on record cannot get an automatic duration."""
        mock_subject_repo.get_subject.return_value = make_subject(subject_type_id=None)

        result = duration_resolver.resolve_for_subject(20, 1)

        assert result.status is DurationStatus.UNSUPPORTED


@pytest.mark.unit
@pytest.mark.services
class TestSupportingResources:
    def test_lists_supported_active_resources_by_id(
        self, duration_resolver, mock_rule_repo, mock_resource_repo
    ):
        """Only active stations with supported rules are returned, ascending by ID."""
        mock_rule_repo.list_for_subject_type.return_value = [
            make_rule(resource_id=1, duration_minutes=45),
            make_rule(resource_id=2, is_supported=False, duration_minutes=None),
            make_rule(resource_id=3, duration_minutes=60),
        ]
        mock_resource_repo.get_many.return_value = [
            make_resource(id=3, name="Station 3"),
            make_resource(id=1),
            make_resource(id=2, name="Station 2"),
        ]

        resolved = duration_resolver.supporting_resources(10)

        assert [r.resource.id for r in resolved] == [1, 3]
        assert [r.duration.minutes for r in resolved] == [45, 60]

    def test_category_filter(self, duration_resolver, mock_rule_repo, mock_resource_repo):
        """Stations of another category are skipped."""
        mock_rule_repo.list_for_subject_type.return_value = [make_rule(resource_id=1)]
        mock_resource_repo.get_many.return_value = [
            make_resource(id=1, service_category="event")
        ]

        assert duration_resolver.supporting_resources(10, "grooming") == []

    def test_store_failure_raises(self, duration_resolver, mock_rule_repo):
        """A read failure is raised, not hidden as an empty list."""
        mock_rule_repo.list_for_subject_type.side_effect = OperationalError(
            "SELECT", {}, Exception("x")
        )
        with pytest.raises(DurationLookupError):
            duration_resolver.supporting_resources(10)


@pytest.mark.unit
class TestSelectionTracker:
    def test_stale_results_are_discarded(self, duration_resolver, mock_rule_repo, known_pair):
        """A response for an older selection is dropped."""
        mock_rule_repo.get_rule.return_value = make_rule()
        tracker = SelectionTracker()

        tracker.select(10, 1)
        first = duration_resolver.resolve_duration(10, 1)
        tracker.select(10, 2)

        assert tracker.accept(first) is None
        assert tracker.current == SelectionKey(10, 2)

    def test_current_result_is_accepted(self, duration_resolver, mock_rule_repo, known_pair):
        mock_rule_repo.get_rule.return_value = make_rule()
        tracker = SelectionTracker()
        tracker.select(10, 1)

        result = duration_resolver.resolve_duration(10, 1)

        assert tracker.accept(result) is result
