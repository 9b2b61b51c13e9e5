"""Tests for loopguard.workflow.failures module."""

import json

import pytest

from loopguard.lib.config import ConfigError
from loopguard.workflow.failures import (
    FailureState,
    record_failure,
    record_success,
    should_pause,
    load_failure_state,
    save_failure_state,
)


class TestRecordFailure:
    """Test record_failure()."""

    def test_increments_and_overwrites_details(self):
        state = FailureState(
            consecutive_failures=1,
            last_failure_summary="old",
            last_failure_run_ref="run-1",
            last_failure_at="2026-01-01T00:00:00+00:00",
        )
        new = record_failure(state, "run-2", "TooManyFiles: 13 > 12", at="2026-01-02T00:00:00+00:00")
        assert new.consecutive_failures == 2
        assert new.last_failure_summary == "TooManyFiles: 13 > 12"
        assert new.last_failure_run_ref == "run-2"
        assert new.last_failure_at == "2026-01-02T00:00:00+00:00"

    def test_does_not_mutate_input(self):
        state = FailureState()
        record_failure(state, "run-1", "boom")
        assert state.consecutive_failures == 0

    def test_defaults_timestamp(self):
        new = record_failure(FailureState(), "run-1", "boom")
        assert new.last_failure_at
        assert "T" in new.last_failure_at


class TestRecordSuccess:
    """Test record_success()."""

    def test_resets_counter_and_keeps_details(self):
        state = FailureState(2, "boom", "run-7", "2026-01-01T00:00:00+00:00")
        new = record_success(state)
        assert new.consecutive_failures == 0
        assert new.last_failure_summary == "boom"
        assert new.last_failure_run_ref == "run-7"

    def test_fresh_state_unchanged(self):
        assert record_success(FailureState()) == FailureState()


class TestShouldPause:
    """Test the pause threshold."""

    def test_below_threshold(self):
        assert not should_pause(FailureState(consecutive_failures=2), 3)

    def test_at_threshold(self):
        assert should_pause(FailureState(consecutive_failures=3), 3)

    def test_above_threshold(self):
        assert should_pause(FailureState(consecutive_failures=5), 3)

    def test_sequence_pauses_on_third_failure(self):
        state = FailureState()
        paused = []
        for i in range(3):
            state = record_failure(state, f"run-{i}", "fail")
            paused.append(should_pause(state, 3))
        assert paused == [False, False, True]

    def test_success_in_between_restarts_count(self):
        state = record_failure(FailureState(), "r1", "fail")
        state = record_failure(state, "r2", "fail")
        state = record_success(state)
        state = record_failure(state, "r3", "fail")
        assert state.consecutive_failures == 1
        assert not should_pause(state, 3)


class TestPersistence:
    """Test load/save of failure_state.json."""

    def test_missing_file_is_fresh_state(self, tmp_path):
        assert load_failure_state(tmp_path / "failure_state.json") == FailureState()

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "failure_state.json"
        state = FailureState(2, "DeniedPathModified: infra/x", "run-9", "2026-03-01T10:00:00+00:00")
        save_failure_state(path, state)

        data = json.loads(path.read_text())
        assert data == {
            "consecutiveFailures": 2,
            "lastFailureSummary": "DeniedPathModified: infra/x",
            "lastFailureRunRef": "run-9",
            "lastFailureAt": "2026-03-01T10:00:00+00:00",
        }
        assert load_failure_state(path) == state

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "failure_state.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_failure_state(path)

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "failure_state.json"
        path.write_text(json.dumps({"consecutiveFailures": -1}))
        with pytest.raises(ConfigError):
            load_failure_state(path)
