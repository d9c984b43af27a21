"""
Tests for feature flags and percentage rollouts.
"""

import pytest

from wellmind.config import FeatureFlagConfig
from wellmind.services.feature_flags import Feature, FeatureFlags, user_bucket
from wellmind.utils.exceptions import ValidationError

USERS = range(1, 501)


@pytest.mark.unit
class TestUserBucket:
    """Stable user bucketing."""

    def test_deterministic(self):
        assert user_bucket(Feature.ENHANCED_PROMPTS, 42) == user_bucket("enhanced_prompts", 42)

    def test_in_range(self):
        assert all(0 <= user_bucket(Feature.BATCH_PROCESSING, user) < 100 for user in USERS)

    def test_independent_across_features(self):
        a = [user_bucket(Feature.ENHANCED_PROMPTS, user) for user in USERS]
        b = [user_bucket(Feature.BATCH_PROCESSING, user) for user in USERS]

        assert a != b


@pytest.mark.unit
class TestRollout:
    """Kill switches and rollout percentages."""

    def test_same_user_same_decision(self):
        flags = FeatureFlags(
            FeatureFlagConfig(enable_enhanced_prompts=True, enhanced_prompts_rollout=50)
        )

        decisions = {flags.should_enable_enhanced_prompts(7) for _ in range(10)}

        assert len(decisions) == 1

    def test_zero_and_full_rollout(self):
        none = FeatureFlags(FeatureFlagConfig(memory_enhancement_rollout=0))
        everyone = FeatureFlags(FeatureFlagConfig(memory_enhancement_rollout=100))

        assert not any(none.should_enable_memory_enhancement(user) for user in USERS)
        assert all(everyone.should_enable_memory_enhancement(user) for user in USERS)

    def test_partial_rollout_matches_buckets(self):
        flags = FeatureFlags(FeatureFlagConfig(batch_processing_rollout=30))

        for user in USERS:
            expected = user_bucket(Feature.BATCH_PROCESSING, user) < 30
            assert flags.should_enable_batch_processing(user) is expected

    def test_kill_switch_overrides_rollout(self):
        flags = FeatureFlags(
            FeatureFlagConfig(enable_memory_enhancement=False, memory_enhancement_rollout=100)
        )

        assert not any(flags.should_enable_memory_enhancement(user) for user in USERS)

    def test_full_enhancement_needs_all_three(self):
        flags = FeatureFlags(
            FeatureFlagConfig(enable_enhanced_prompts=True, enhanced_prompts_rollout=100)
        )
        assert flags.should_enable_full_memory_enhancement(1)

        flags.set_flag("real_time_dedup", False)

        assert not flags.should_enable_full_memory_enhancement(1)

    def test_config_is_not_shared(self):
        config = FeatureFlagConfig()
        flags = FeatureFlags(config)

        flags.set_flag(Feature.CIRCUIT_BREAKERS, False)

        assert config.enable_circuit_breakers is True
        assert not flags.are_circuit_breakers_enabled()


@pytest.mark.unit
class TestRuntimeControl:
    """set_flag and set_rollout_percentage."""

    def test_set_flag_accepts_env_style_names(self):
        flags = FeatureFlags()

        assert flags.set_flag("ENABLE_REAL_TIME_DEDUP", False) is True
        assert not flags.is_real_time_dedup_enabled()

    def test_set_unknown_flag(self):
        assert FeatureFlags().set_flag("time_travel", True) is False

    def test_set_rollout(self):
        flags = FeatureFlags()

        assert flags.set_rollout_percentage("enhanced_prompts", 80) is True
        assert flags.get_rollout_percentages()["enhanced_prompts"] == 80

    def test_rollout_out_of_range(self):
        flags = FeatureFlags()

        with pytest.raises(ValidationError):
            flags.set_rollout_percentage("enhanced_prompts", 101)
        with pytest.raises(ValidationError):
            flags.set_rollout_percentage("enhanced_prompts", -1)

    def test_rollout_for_switch_only_feature(self):
        assert FeatureFlags().set_rollout_percentage(Feature.CIRCUIT_BREAKERS, 50) is False


@pytest.mark.unit
class TestObservability:
    """Flag views."""

    def test_user_flags_keys(self):
        flags = FeatureFlags().get_user_flags(1)

        assert set(flags) == {
            "memory_enhancement",
            "real_time_dedup",
            "enhanced_prompts",
            "batch_processing",
            "circuit_breakers",
            "full_memory_enhancement",
        }

    def test_defaults(self):
        flags = FeatureFlags()

        assert flags.get_all_flags() == {
            "features": {
                "memory_enhancement": True,
                "real_time_dedup": True,
                "enhanced_prompts": False,
                "batch_processing": True,
                "circuit_breakers": True,
            },
            "rollout_percentages": {
                "memory_enhancement": 100,
                "enhanced_prompts": 25,
                "batch_processing": 50,
            },
        }

    def test_flat_states(self):
        states = FeatureFlags().get_all_feature_states()

        assert states["enable_circuit_breakers"] is True
        assert states["batch_processing_rollout"] == 50
        assert "circuit_breakers_rollout" not in states
