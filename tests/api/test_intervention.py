from unittest.mock import Mock

import pytest

from myfocus.api.services.intervention import (
    InterventionKind,
    InterventionPolicy,
    decide_intervention,
    in_cooldown,
)
from myfocus.model.models import EncouragementFrequency, FocusState, InterventionSettings


def _rng(value):
    rng = Mock()
    rng.random.return_value = value
    return rng


class TestDecideIntervention:
    """介入判定のテスト"""

    def test_light_distraction(self):
        action = decide_intervention(
            FocusState.DISTRACTED, InterventionSettings(), None, 0.0, "Write report"
        )
        assert action is not None
        assert action.kind is InterventionKind.LIGHT
        assert action.urgent is False
        assert action.display_seconds == 10
        assert "Write report" in action.message

    def test_severe_distraction(self):
        action = decide_intervention(
            FocusState.SEVERELY_DISTRACTED, InterventionSettings(), None, 0.0
        )
        assert action is not None
        assert action.kind is InterventionKind.SEVERE
        assert action.urgent is True
        assert action.display_seconds == 15

    def test_unknown_never_acts(self):
        assert decide_intervention(FocusState.UNKNOWN, InterventionSettings(), None, 0.0) is None

    def test_disabled(self):
        settings = InterventionSettings(enabled=False)
        assert decide_intervention(FocusState.SEVERELY_DISTRACTED, settings, None, 0.0) is None

    def test_kind_toggles(self):
        settings = InterventionSettings(
            light_distraction_notification=False, severe_distraction_popup=False
        )
        assert decide_intervention(FocusState.DISTRACTED, settings, None, 0.0) is None
        assert decide_intervention(FocusState.SEVERELY_DISTRACTED, settings, None, 0.0) is None

    def test_cooldown_blocks(self):
        """クールダウン中は何もしない"""
        settings = InterventionSettings(intervention_cooldown_minutes=5)
        assert in_cooldown(settings, 0.0, 299.0) is True
        assert in_cooldown(settings, 0.0, 300.0) is False
        assert decide_intervention(FocusState.DISTRACTED, settings, 0.0, 120.0) is None

    @pytest.mark.parametrize(
        ("frequency", "draw", "fires"),
        [
            (EncouragementFrequency.LOW, 0.04, True),
            (EncouragementFrequency.LOW, 0.06, False),
            (EncouragementFrequency.MEDIUM, 0.09, True),
            (EncouragementFrequency.MEDIUM, 0.11, False),
            (EncouragementFrequency.HIGH, 0.19, True),
            (EncouragementFrequency.HIGH, 0.21, False),
        ],
    )
    def test_encouragement_probability(self, frequency, draw, fires):
        settings = InterventionSettings(encouragement_frequency=frequency)
        action = decide_intervention(
            FocusState.FOCUSED, settings, None, 0.0, rng=_rng(draw)
        )
        assert (action is not None) is fires
        if fires:
            assert action.kind is InterventionKind.ENCOURAGEMENT

    def test_encouragement_disabled(self):
        settings = InterventionSettings(encouragement_enabled=False)
        assert decide_intervention(FocusState.FOCUSED, settings, None, 0.0, rng=_rng(0.0)) is None


class TestInterventionPolicy:
    """クールダウン状態を持つポリシーのテスト"""

    def test_two_distractions_within_cooldown_yield_one_action(self, fake_clock):
        policy = InterventionPolicy(clock=fake_clock)

        first = policy.evaluate(FocusState.DISTRACTED)
        fake_clock.advance(60)
        second = policy.evaluate(FocusState.DISTRACTED)

        assert first is not None
        assert second is None

    def test_cooldown_expires(self, fake_clock):
        policy = InterventionPolicy(clock=fake_clock)
        assert policy.evaluate(FocusState.DISTRACTED) is not None

        fake_clock.advance(5 * 60)
        assert policy.cooldown_remaining() == 0.0
        assert policy.evaluate(FocusState.SEVERELY_DISTRACTED) is not None

    def test_encouragement_resets_cooldown(self, fake_clock):
        """励ましも共通クールダウンを開始する"""
        policy = InterventionPolicy(clock=fake_clock, rng=_rng(0.0))

        assert policy.evaluate(FocusState.FOCUSED) is not None
        fake_clock.advance(30)
        assert policy.evaluate(FocusState.SEVERELY_DISTRACTED) is None
        assert policy.cooldown_remaining() == pytest.approx(270.0)

    def test_no_action_keeps_cooldown_clear(self, fake_clock):
        policy = InterventionPolicy(clock=fake_clock, rng=_rng(0.99))
        assert policy.evaluate(FocusState.FOCUSED) is None
        assert policy.cooldown_remaining() == 0.0

    def test_update_settings(self, fake_clock):
        policy = InterventionPolicy(clock=fake_clock)
        policy.update_settings(InterventionSettings(enabled=False))
        assert policy.settings.enabled is False
        assert policy.evaluate(FocusState.SEVERELY_DISTRACTED) is None
