"""Tests for Settings: defaults, environment overrides and startup validation."""

import os
import sys
from datetime import time

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_scheduler.config import Settings


def _settings(**kwargs):
    return Settings(_env_file=None, **kwargs)


class TestDefaults:
    def test_calendar_window(self):
        s = _settings()
        assert s.open_time == time(8, 0)
        assert s.close_time == time(23, 0)
        assert s.slot_minutes == 15

    def test_scheduling_rules(self):
        rules = _settings(buffer_minutes=45).scheduling_rules()
        assert rules.buffer_minutes == 45
        assert rules.setup_minutes == 60
        assert set(rules.services) == {"DJ", "Photography", "Karaoke"}
        assert rules.services["DJ"].default_minutes == 300

    def test_gesture_thresholds(self):
        t = _settings(long_press_ms=600).gesture_thresholds()
        assert t.long_press_ms == 600
        assert t.tap_max_ms == 200
        assert t.drag_min_distance == 50


class TestEnvironment:
    def test_scalar_override(self, monkeypatch):
        monkeypatch.setenv("SLOT_MINUTES", "30")
        monkeypatch.setenv("CLOSE_TIME", "02:00")
        s = _settings()
        assert s.slot_minutes == 30
        assert s.scheduling_rules().crosses_midnight is True

    def test_service_rules_json(self, monkeypatch):
        monkeypatch.setenv(
            "SERVICE_RULES",
            '{"Lighting": {"min_minutes": 60, "max_minutes": 120, "default_minutes": 90, "setup_weight": 2}}',
        )
        rules = _settings().scheduling_rules()
        assert list(rules.services) == ["Lighting"]
        assert rules.services["Lighting"].setup_weight == 2


class TestValidateStartup:
    def test_bad_timezone_raises(self):
        with pytest.raises(ValueError, match="CALENDAR_TIMEZONE"):
            _settings(calendar_timezone="Mars/Olympus").validate_startup()

    def test_bad_granularity_raises(self):
        with pytest.raises(ValueError):
            _settings(slot_minutes=7).validate_startup()

    def test_full_day_window_warns(self):
        warnings = _settings(open_time=time(0), close_time=time(0), admin_api_key="k").validate_startup()
        assert len(warnings) == 1
        assert "24 hours" in warnings[0]

    def test_missing_admin_key_warns(self):
        warnings = _settings().validate_startup()
        assert any("ADMIN_API_KEY" in w and "locked" in w for w in warnings)

    def test_missing_admin_key_debug_warns(self):
        warnings = _settings(debug=True).validate_startup()
        assert any("open" in w for w in warnings)

    def test_clean_config(self):
        assert _settings(admin_api_key="k").validate_startup() == []
