"""
Unit tests for time-based alert suppression.
"""

import pytest

from vitalwatch.config import AlertEngineConfig
from vitalwatch.models.alerts import Alert, AlertCategory, AlertPriority, with_priority
from vitalwatch.services.alert_suppression import SuppressionEngine


NOW = 1_700_000_000_000
MINUTE = 60_000


def make_alert(condition="Low SpO2: 91.0%", patient_id="1", rule_id="oxygen_saturation.low", timestamp=NOW):
    return Alert(
        patient_id=patient_id,
        condition=condition,
        timestamp=timestamp,
        category=AlertCategory.BLOOD_OXYGEN,
        rule_id=rule_id
    )


class TestSuppressionEngine:

    @pytest.fixture
    def engine(self):
        return SuppressionEngine()

    def test_first_occurrence(self, engine):
        decision = engine.decide(make_alert(), NOW)

        assert not decision.suppressed
        assert not decision.repeated
        assert decision.reason == SuppressionEngine.FIRST_OCCURRENCE
        assert decision.previous_trigger_time is None
        assert engine.entry(("1", "Low SpO2: 91.0%")).last_trigger_time == NOW

    def test_suppressed_within_window(self, engine):
        engine.decide(make_alert(), NOW)

        decision = engine.decide(make_alert(), NOW + 4 * MINUTE)

        assert decision.suppressed
        assert decision.reason == SuppressionEngine.WITHIN_SUPPRESSION_WINDOW
        assert decision.previous_trigger_time == NOW

    def test_suppressed_decision_does_not_refresh_entry(self, engine):
        engine.decide(make_alert(), NOW)
        engine.decide(make_alert(), NOW + 4 * MINUTE)

        decision = engine.decide(make_alert(), NOW + 5 * MINUTE)

        assert not decision.suppressed
        assert decision.repeated
        assert decision.reason == SuppressionEngine.REPEAT_AFTER_WINDOW

    def test_window_boundary_is_a_repeat(self, engine):
        engine.decide(make_alert(), NOW)

        assert engine.decide(make_alert(), NOW + 5 * MINUTE - 1).suppressed
        assert engine.decide(make_alert(), NOW + 5 * MINUTE).repeated

    def test_repeat_refreshes_entry(self, engine):
        engine.decide(make_alert(), NOW)
        engine.decide(make_alert(), NOW + 6 * MINUTE)

        assert engine.entry(("1", "Low SpO2: 91.0%")).last_trigger_time == NOW + 6 * MINUTE
        assert engine.decide(make_alert(), NOW + 8 * MINUTE).suppressed

    def test_keys_are_per_patient(self, engine):
        engine.decide(make_alert(patient_id="1"), NOW)

        decision = engine.decide(make_alert(patient_id="2"), NOW)

        assert decision.reason == SuppressionEngine.FIRST_OCCURRENCE
        assert len(engine) == 2

    def test_condition_text_is_part_of_key(self, engine):
        engine.decide(make_alert(condition="Low SpO2: 91.0%"), NOW)

        decision = engine.decide(make_alert(condition="Low SpO2: 90.0%"), NOW)

        assert not decision.suppressed

    def test_priority_overlay_does_not_change_key(self, engine):
        engine.decide(make_alert(), NOW)

        decision = engine.decide(with_priority(make_alert(), AlertPriority.HIGH), NOW + MINUTE)

        assert decision.suppressed

    def test_rule_key_mode(self):
        engine = SuppressionEngine(AlertEngineConfig(dedup_key="rule"))
        engine.decide(make_alert(condition="Low SpO2: 91.0%"), NOW)

        decision = engine.decide(make_alert(condition="Low SpO2: 90.0%"), NOW + MINUTE)

        assert decision.suppressed
        assert decision.key == ("1", "oxygen_saturation.low")

    def test_custom_window(self):
        engine = SuppressionEngine(AlertEngineConfig(suppression_window_ms=1000))
        engine.decide(make_alert(), NOW)

        assert engine.decide(make_alert(), NOW + 1000).repeated

    def test_reset(self, engine):
        engine.decide(make_alert(), NOW)
        engine.reset()

        assert len(engine) == 0
        assert engine.decide(make_alert(), NOW + 1).reason == SuppressionEngine.FIRST_OCCURRENCE

    def test_decision_to_dict(self, engine):
        decision = engine.decide(make_alert(), NOW)

        assert decision.to_dict() == {
            "key": ["1", "Low SpO2: 91.0%"],
            "suppressed": False,
            "repeated": False,
            "reason": "FIRST_OCCURRENCE",
            "decision_time": NOW,
            "previous_trigger_time": None
        }
        assert engine.entry(decision.key).to_dict() == {
            "key": ["1", "Low SpO2: 91.0%"],
            "last_trigger_time": NOW
        }
