"""Tests for pulse_relay.state module."""

from unittest.mock import MagicMock

import pytest

from pulse_relay.state import MonitorState, Phase, StateStore


class TestMonitorState:
    """Tests for MonitorState."""

    def test_defaults(self):
        state = MonitorState()
        assert state.heart_rate == 0.0
        assert state.is_active is False
        assert state.status == "Ready"
        assert state.error is None
        assert (state.success_count, state.fail_count) == (0, 0)
        assert state.phase is Phase.IDLE

    def test_to_dict(self):
        """to_dict produces plain JSON-friendly values."""
        data = MonitorState(heart_rate=71.0, phase=Phase.ACTIVE).to_dict()
        assert data["heart_rate"] == 71.0
        assert data["phase"] == "active"
        assert set(data) >= {"heart_rate", "is_active", "status", "error", "success_count", "fail_count"}


class TestStateStore:
    """Tests for StateStore."""

    def test_update_replaces_snapshot(self):
        store = StateStore()
        before = store.snapshot
        after = store.update(heart_rate=80.0, status="Monitoring...")
        assert store.snapshot is after
        assert before.heart_rate == 0.0
        assert after.heart_rate == 80.0

    def test_observers_get_complete_snapshot(self):
        """Observers receive one snapshot per update with every change applied."""
        store = StateStore()
        observer = MagicMock()
        store.subscribe(observer)

        store.update(is_active=True, status="Monitoring...", success_count=0)

        observer.assert_called_once()
        snapshot = observer.call_args[0][0]
        assert snapshot.is_active is True
        assert snapshot.status == "Monitoring..."

    def test_no_notification_without_change(self):
        store = StateStore()
        observer = MagicMock()
        store.subscribe(observer)
        store.update(status="Ready")
        observer.assert_not_called()

    def test_unsubscribe(self):
        store = StateStore()
        observer = MagicMock()
        unsubscribe = store.subscribe(observer)
        unsubscribe()
        unsubscribe()
        store.update(heart_rate=1.0)
        observer.assert_not_called()

    def test_failing_observer_does_not_block_others(self):
        store = StateStore()
        bad = MagicMock(side_effect=RuntimeError("boom"))
        good = MagicMock()
        store.subscribe(bad)
        store.subscribe(good)

        store.update(heart_rate=60.0)

        good.assert_called_once()
        assert store.snapshot.heart_rate == 60.0

    def test_increment(self):
        store = StateStore()
        store.increment("success_count")
        store.increment("success_count")
        store.increment("fail_count")
        assert (store.snapshot.success_count, store.snapshot.fail_count) == (2, 1)

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            StateStore().update(bogus=1)
