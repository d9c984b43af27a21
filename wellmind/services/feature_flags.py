"""
Feature flags and per-user rollout control for memory features.

Each rollout-controlled feature is gated twice: a global kill switch, then a
stable per-user bucket (0-99) compared against the rollout percentage.
"""

import hashlib
from enum import Enum
from typing import Any

from wellmind.config import FeatureFlagConfig
from wellmind.utils.exceptions import ValidationError
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)


class Feature(str, Enum):
    """Memory features that can be switched off or rolled out gradually."""

    MEMORY_ENHANCEMENT = "memory_enhancement"
    REAL_TIME_DEDUP = "real_time_dedup"
    ENHANCED_PROMPTS = "enhanced_prompts"
    BATCH_PROCESSING = "batch_processing"
    CIRCUIT_BREAKERS = "circuit_breakers"

    @property
    def switch_field(self) -> str:
        return f"enable_{self.value}"

    @property
    def rollout_field(self) -> str | None:
        if self in ROLLOUT_FEATURES:
            return f"{self.value}_rollout"
        return None


ROLLOUT_FEATURES = frozenset(
    {Feature.MEMORY_ENHANCEMENT, Feature.ENHANCED_PROMPTS, Feature.BATCH_PROCESSING}
)


def user_bucket(feature: Feature | str, user_id: int) -> int:
    """
    Stable 0-99 bucket for a user and feature.

    Hashing the feature name in keeps a user's buckets independent across
    features, so a low bucket for one rollout doesn't imply a low one for all.
    """
    name = feature.value if isinstance(feature, Feature) else str(feature)
    digest = hashlib.sha256(f"{name}:{user_id}".encode()).hexdigest()
    return int(digest, 16) % 100


def _resolve(name: str | Feature) -> Feature | None:
    if isinstance(name, Feature):
        return name
    key = name.strip().lower().removeprefix("enable_").removesuffix("_rollout")
    try:
        return Feature(key)
    except ValueError:
        return None


class FeatureFlags:
    """
    Deterministic feature flag evaluation.

    The same user and configuration always yield the same decision.
    Flags can be changed at runtime through set_flag / set_rollout_percentage.
    """

    def __init__(self, config: FeatureFlagConfig | None = None):
        self.config = (config or FeatureFlagConfig()).model_copy()

    def is_enabled(self, feature: Feature) -> bool:
        """Global kill switch state."""
        return bool(getattr(self.config, feature.switch_field))

    def rollout_percentage(self, feature: Feature) -> int:
        """Rollout percentage (100 for features without gradual rollout)."""
        field = feature.rollout_field
        return getattr(self.config, field) if field else 100

    def is_enabled_for_user(self, feature: Feature, user_id: int) -> bool:
        if not self.is_enabled(feature):
            return False
        return user_bucket(feature, user_id) < self.rollout_percentage(feature)

    # Named checks

    def should_enable_memory_enhancement(self, user_id: int) -> bool:
        return self.is_enabled_for_user(Feature.MEMORY_ENHANCEMENT, user_id)

    def should_enable_enhanced_prompts(self, user_id: int) -> bool:
        return self.is_enabled_for_user(Feature.ENHANCED_PROMPTS, user_id)

    def should_enable_batch_processing(self, user_id: int) -> bool:
        return self.is_enabled_for_user(Feature.BATCH_PROCESSING, user_id)

    def is_real_time_dedup_enabled(self) -> bool:
        return self.is_enabled(Feature.REAL_TIME_DEDUP)

    def are_circuit_breakers_enabled(self) -> bool:
        return self.is_enabled(Feature.CIRCUIT_BREAKERS)

    def should_enable_full_memory_enhancement(self, user_id: int) -> bool:
        return (
            self.should_enable_memory_enhancement(user_id)
            and self.should_enable_enhanced_prompts(user_id)
            and self.is_real_time_dedup_enabled()
        )

    # Observability

    def get_user_flags(self, user_id: int) -> dict[str, bool]:
        """Every feature's decision for one user."""
        return {
            Feature.MEMORY_ENHANCEMENT.value: self.should_enable_memory_enhancement(user_id),
            Feature.REAL_TIME_DEDUP.value: self.is_real_time_dedup_enabled(),
            Feature.ENHANCED_PROMPTS.value: self.should_enable_enhanced_prompts(user_id),
            Feature.BATCH_PROCESSING.value: self.should_enable_batch_processing(user_id),
            Feature.CIRCUIT_BREAKERS.value: self.are_circuit_breakers_enabled(),
            "full_memory_enhancement": self.should_enable_full_memory_enhancement(user_id),
        }

    def get_rollout_percentages(self) -> dict[str, int]:
        return {
            feature.value: self.rollout_percentage(feature)
            for feature in Feature
            if feature in ROLLOUT_FEATURES
        }

    def get_all_feature_states(self) -> dict[str, bool | int]:
        """Flat view of switches and rollout percentages."""
        states: dict[str, bool | int] = {
            feature.switch_field: self.is_enabled(feature) for feature in Feature
        }
        for feature in Feature:
            if feature.rollout_field:
                states[feature.rollout_field] = self.rollout_percentage(feature)
        return states

    def get_all_flags(self) -> dict[str, Any]:
        """Switches and rollout percentages as separate sections."""
        return {
            "features": {feature.value: self.is_enabled(feature) for feature in Feature},
            "rollout_percentages": self.get_rollout_percentages(),
        }

    # Runtime control

    def set_flag(self, name: str | Feature, value: bool) -> bool:
        """
        Flip a kill switch.

        Args:
            name: Feature name ("real_time_dedup", "ENABLE_REAL_TIME_DEDUP", or a Feature)
            value: New state

        Returns:
            True if the flag exists and was set, False otherwise
        """
        feature = _resolve(name)
        if feature is None:
            logger.warning(f"Unknown feature flag: {name}")
            return False

        setattr(self.config, feature.switch_field, bool(value))
        logger.info(f"Feature flag {feature.value} set to {bool(value)}")
        return True

    def set_rollout_percentage(self, name: str | Feature, percentage: int) -> bool:
        """
        Change a rollout percentage.

        Returns:
            True if the feature supports rollout and was updated, False otherwise

        Raises:
            ValidationError: If percentage is outside 0-100
        """
        if not 0 <= percentage <= 100:
            raise ValidationError(
                f"Rollout percentage must be between 0 and 100, got {percentage}",
                {"feature": str(name)},
            )

        feature = _resolve(name)
        if feature is None or feature.rollout_field is None:
            logger.warning(f"Feature without rollout: {name}")
            return False

        setattr(self.config, feature.rollout_field, int(percentage))
        logger.info(f"Rollout for {feature.value} set to {percentage}%")
        return True
