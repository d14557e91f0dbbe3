"""
Unit tests for the incident tracker and duration formatting.
"""

import pytest

from statuswatch.engine.incident_tracker import IncidentTracker
from statuswatch.models.enums import IncidentAction, Status, Transition
from statuswatch.models.incidents import format_duration
from tests.conftest import BASE_TIME_MS, make_check, make_incident


class TestIncidentTrackerApply:
    """Test IncidentTracker.apply state machine."""

    def test_onset_opens_incident(self, mock_storage):
        tracker = IncidentTracker(mock_storage)
        check = make_check(status=Status.DOWN, error="connection refused")

        delta = tracker.apply(check, Transition.ONSET)

        assert delta.action is IncidentAction.OPENED
        assert delta.incident.started_at == check.timestamp
        assert delta.incident.last_error == "connection refused"
        assert delta.incident.resolved_at is None
        assert len(mock_storage.incidents) == 1

    def test_onset_with_open_incident_does_not_duplicate(self, mock_storage):
        tracker = IncidentTracker(mock_storage)
        mock_storage.open_incident(make_incident(started_at=BASE_TIME_MS - 60_000))
        check = make_check(status=Status.DOWN, error="timeout")

        delta = tracker.apply(check, Transition.ONSET)

        assert delta.action is IncidentAction.UPDATED
        assert len(mock_storage.incidents) == 1
        assert mock_storage.incidents[0].started_at == BASE_TIME_MS - 60_000
        assert mock_storage.incidents[0].last_error == "timeout"

    def test_still_down_refreshes_last_error(self, mock_storage):
        tracker = IncidentTracker(mock_storage)
        tracker.apply(make_check(status=Status.DOWN, error="first"), Transition.ONSET)

        delta = tracker.apply(
            make_check(status=Status.DOWN, timestamp=BASE_TIME_MS + 60_000, error="second"),
            Transition.NONE,
        )

        assert delta.action is IncidentAction.UPDATED
        assert mock_storage.incidents[0].last_error == "second"
        assert mock_storage.incidents[0].started_at == BASE_TIME_MS

    def test_still_down_without_error_keeps_last_error(self, mock_storage):
        tracker = IncidentTracker(mock_storage)
        tracker.apply(make_check(status=Status.DOWN, error="first"), Transition.ONSET)

        delta = tracker.apply(make_check(status=Status.DOWN, error=None), Transition.NONE)

        assert delta.action is IncidentAction.UPDATED
        assert mock_storage.incidents[0].last_error == "first"

    def test_down_without_open_incident_is_noop(self, mock_storage):
        tracker = IncidentTracker(mock_storage)

        delta = tracker.apply(make_check(status=Status.DOWN, error="boom"), Transition.NONE)

        assert delta.action is IncidentAction.NONE
        assert mock_storage.incidents == []

    def test_recovery_resolves_incident(self, mock_storage):
        tracker = IncidentTracker(mock_storage)
        tracker.apply(make_check(status=Status.DOWN), Transition.ONSET)

        recovered_at = BASE_TIME_MS + 95_000
        delta = tracker.apply(
            make_check(status=Status.OPERATIONAL, timestamp=recovered_at), Transition.RECOVERY
        )

        assert delta.action is IncidentAction.RESOLVED
        assert delta.incident.resolved_at == recovered_at
        assert delta.incident.format_duration(recovered_at) == "1m 35s"

    def test_recovery_without_open_incident_is_noop(self, mock_storage):
        tracker = IncidentTracker(mock_storage)

        delta = tracker.apply(make_check(status=Status.OPERATIONAL), Transition.RECOVERY)

        assert delta.action is IncidentAction.NONE
        assert delta.incident is None

    @pytest.mark.parametrize("status", [Status.OPERATIONAL, Status.DEGRADED])
    def test_healthy_without_transition_is_noop(self, mock_storage, status):
        tracker = IncidentTracker(mock_storage)

        delta = tracker.apply(make_check(status=status), Transition.NONE)

        assert delta.action is IncidentAction.NONE
        assert mock_storage.incidents == []


class TestFormatDuration:
    """Test downtime duration formatting."""

    @pytest.mark.parametrize(
        "elapsed_ms, expected",
        [
            (0, "0m 0s"),
            (999, "0m 0s"),
            (95_000, "1m 35s"),
            (59 * 60_000 + 59_000, "59m 59s"),
            (60 * 60_000, "1h 0m"),
            (125 * 60_000, "2h 5m"),
            (125 * 60_000 + 59_000, "2h 5m"),
            (25 * 60 * 60_000, "25h 0m"),
        ],
    )
    def test_format_duration(self, elapsed_ms, expected):
        assert format_duration(elapsed_ms) == expected

    def test_format_duration_negative_clamps_to_zero(self):
        assert format_duration(-5_000) == "0m 0s"

    def test_open_incident_duration_measured_to_now(self):
        incident = make_incident(started_at=BASE_TIME_MS)
        assert incident.is_open
        assert incident.format_duration(BASE_TIME_MS + 125 * 60_000) == "2h 5m"

    def test_resolved_incident_duration_ignores_now(self):
        incident = make_incident(started_at=BASE_TIME_MS, resolved_at=BASE_TIME_MS + 95_000)
        assert not incident.is_open
        assert incident.format_duration(BASE_TIME_MS + 10 * 60 * 60_000) == "1m 35s"
