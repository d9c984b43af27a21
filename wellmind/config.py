"""
Configuration for the WellMind memory core.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class StorageConfig(BaseModel):
    """Memory store configuration."""

    backend: str = "sqlite"  # sqlite, memory
    db_path: str = "data/wellmind.db"


class DeduplicationConfig(BaseModel):
    """Duplicate detection and consolidation configuration."""

    similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    min_token_length: int = Field(default=3, ge=1)
    scheduled: bool = False
    schedule_interval_hours: float = Field(default=24.0, gt=0)


class RelationshipConfig(BaseModel):
    """Heuristic relationship discovery configuration."""

    max_candidates: int = Field(default=50, ge=1)
    contradiction_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    support_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    elaboration_coverage: float = Field(default=0.6, ge=0.0, le=1.0)
    temporal_window_hours: float = Field(default=24.0, gt=0)
    min_strength: float = Field(default=0.3, ge=0.0, le=1.0)
    max_facts_per_memory: int = Field(default=5, ge=1)
    default_depth: int = Field(default=2, ge=1)
    max_related: int = Field(default=10, ge=1)


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker configuration."""

    failure_threshold: int = Field(default=5, ge=1)
    cooldown_seconds: float = Field(default=60.0, gt=0)


class ProcessorConfig(BaseModel):
    """Background processor configuration."""

    max_concurrency: int = Field(default=4, ge=1)
    processing_timeout: float = Field(default=5.0, gt=0)
    max_queue_size: int = Field(default=1000, ge=1)
    task_history_size: int = Field(default=500, ge=0)


class PerformanceConfig(BaseModel):
    """Performance monitor sample retention and alert thresholds."""

    max_samples: int = Field(default=1000, ge=1)
    memory_processing_ms: float = 100.0
    retrieval_ms: float = 50.0
    deduplication_ms: float = 500.0
    prompt_generation_ms: float = 100.0
    error_rate_percent: float = 1.0
    queue_size: int = 1000
    chat_response_increase_percent: float = 10.0
    deduplication_hit_rate_percent: float = 5.0


class FeatureFlagConfig(BaseModel):
    """Kill switches and rollout percentages for memory features."""

    enable_memory_enhancement: bool = True
    enable_real_time_dedup: bool = True
    enable_enhanced_prompts: bool = False
    enable_batch_processing: bool = True
    enable_circuit_breakers: bool = True

    memory_enhancement_rollout: int = Field(default=100, ge=0, le=100)
    enhanced_prompts_rollout: int = Field(default=25, ge=0, le=100)
    batch_processing_rollout: int = Field(default=50, ge=0, le=100)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    deduplication: DeduplicationConfig = Field(default_factory=DeduplicationConfig)
    relationships: RelationshipConfig = Field(default_factory=RelationshipConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    processor: ProcessorConfig = Field(default_factory=ProcessorConfig)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    feature_flags: FeatureFlagConfig = Field(default_factory=FeatureFlagConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            WELLMIND_STORAGE_BACKEND: Store backend (sqlite, memory)
            WELLMIND_DB_PATH: SQLite database path
            WELLMIND_DEDUP_SIMILARITY_THRESHOLD: Fuzzy duplicate threshold
            WELLMIND_DEDUP_SCHEDULED: Run consolidation periodically
            WELLMIND_CB_FAILURE_THRESHOLD: Failures before the breaker opens
            WELLMIND_CB_COOLDOWN_SECONDS: Open-state cool-down window
            WELLMIND_PROCESSOR_CONCURRENCY: Background worker count
            WELLMIND_PROCESSOR_TIMEOUT: Per-task timeout in seconds
            ENABLE_MEMORY_ENHANCEMENT / ENABLE_REAL_TIME_DEDUP / ENABLE_ENHANCED_PROMPTS /
            ENABLE_BATCH_PROCESSING / ENABLE_CIRCUIT_BREAKERS: Kill switches
            MEMORY_ENHANCEMENT_ROLLOUT / ENHANCED_PROMPTS_ROLLOUT /
            BATCH_PROCESSING_ROLLOUT: Rollout percentages (0-100)
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            if value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            storage=StorageConfig(
                backend=get_env("WELLMIND_STORAGE_BACKEND", "sqlite"),
                db_path=get_env("WELLMIND_DB_PATH", "data/wellmind.db"),
            ),
            deduplication=DeduplicationConfig(
                similarity_threshold=get_env("WELLMIND_DEDUP_SIMILARITY_THRESHOLD", 0.85),
                scheduled=get_env("WELLMIND_DEDUP_SCHEDULED", False),
                schedule_interval_hours=get_env("WELLMIND_DEDUP_INTERVAL_HOURS", 24.0),
            ),
            relationships=RelationshipConfig(
                max_candidates=get_env("WELLMIND_REL_MAX_CANDIDATES", 50),
                temporal_window_hours=get_env("WELLMIND_REL_TEMPORAL_WINDOW_HOURS", 24.0),
                min_strength=get_env("WELLMIND_REL_MIN_STRENGTH", 0.3),
            ),
            circuit_breaker=CircuitBreakerConfig(
                failure_threshold=get_env("WELLMIND_CB_FAILURE_THRESHOLD", 5),
                cooldown_seconds=get_env("WELLMIND_CB_COOLDOWN_SECONDS", 60.0),
            ),
            processor=ProcessorConfig(
                max_concurrency=get_env("WELLMIND_PROCESSOR_CONCURRENCY", 4),
                processing_timeout=get_env("WELLMIND_PROCESSOR_TIMEOUT", 5.0),
                max_queue_size=get_env("WELLMIND_PROCESSOR_MAX_QUEUE", 1000),
            ),
            feature_flags=FeatureFlagConfig(
                enable_memory_enhancement=get_env("ENABLE_MEMORY_ENHANCEMENT", True),
                enable_real_time_dedup=get_env("ENABLE_REAL_TIME_DEDUP", True),
                enable_enhanced_prompts=get_env("ENABLE_ENHANCED_PROMPTS", False),
                enable_batch_processing=get_env("ENABLE_BATCH_PROCESSING", True),
                enable_circuit_breakers=get_env("ENABLE_CIRCUIT_BREAKERS", True),
                memory_enhancement_rollout=get_env("MEMORY_ENHANCEMENT_ROLLOUT", 100),
                enhanced_prompts_rollout=get_env("ENHANCED_PROMPTS_ROLLOUT", 25),
                batch_processing_rollout=get_env("BATCH_PROCESSING_ROLLOUT", 50),
            ),
            logging=LoggingConfig(
                level=get_env("WELLMIND_LOG_LEVEL", "INFO"),
                log_to_file=get_env("WELLMIND_LOG_TO_FILE", True),
                log_dir=get_env("WELLMIND_LOG_DIR", "logs"),
                file_rotation=get_env("WELLMIND_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("WELLMIND_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("WELLMIND_LOG_COMPRESSION", "zip"),
                serialize=get_env("WELLMIND_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f)

        return cls(**(data or {}))

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        final_dict = {**config_dict}

        # Only sections whose env values differ from defaults override the YAML
        default = cls()
        for section in (
            "storage",
            "deduplication",
            "relationships",
            "circuit_breaker",
            "processor",
            "feature_flags",
            "logging",
        ):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
