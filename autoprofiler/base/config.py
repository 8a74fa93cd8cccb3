# ============================================================================
# autoprofiler/base/config.py
# Agent Configuration Management
# ============================================================================
#
# PURPOSE:
# All process-level settings for the profiling agent. Remote tunables that
# change at runtime live in autoprofiler.contracts.settings; this module only
# holds the values fixed at startup (initial tunables, storage, logging).
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: config groups can't be mutated after creation
# 2. Environment variables: AUTOPROFILER_* overrides for every group
# 3. One shared config object, replaceable in tests via set_config()
#
# ============================================================================

from __future__ import annotations

import os
import logging
import tempfile
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

from autoprofiler.errors import ErrorCode, ProfilerError

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError as e:
        raise ProfilerError(
            ErrorCode.CONFIG_INVALID,
            f"{name} must be a number, got {raw!r}",
            details={"variable": name, "value": raw},
        ) from e


def _env_seconds(name: str, default: float) -> timedelta:
    return timedelta(seconds=_env_float(name, default))


# ============================================================================
# Scheduling Configuration
# ============================================================================
# Initial tunables for every scheduling policy. Remote settings replace them
# once the first refresh succeeds.

@dataclass(frozen=True)
class SchedulingConfig:
    # Master switch; a disabled agent never starts a capture
    enabled: bool = True

    # How long one capture runs
    duration: timedelta = timedelta(seconds=30)

    # How often tunables are re-evaluated (refresh tick) and idle polling cadence
    configuration_update_frequency: timedelta = timedelta(seconds=5)

    # Wait before any policy is allowed to start capturing
    initial_delay: timedelta = timedelta(0)

    # Standalone mode never contacts a settings source
    standalone_mode: bool = False


@dataclass(frozen=True)
class TriggerConfig:
    cpu_threshold: float = 80.0
    cpu_cooldown: timedelta = timedelta(seconds=14400)
    memory_threshold: float = 80.0
    memory_cooldown: timedelta = timedelta(seconds=14400)

    # Share of wall-clock time spent profiling by the random policy
    random_overhead: float = 0.01

    # Rolling average window for resource usage, in seconds
    average_window: float = 30.0
    sampling_interval: float = 1.0


@dataclass(frozen=True)
class SamplingConfig:
    # Relative bucket width; 0.1 means ~10% wide duration buckets
    precision: float = 0.1

    # Durations (ms) at or below this land in bucket 0
    minimum_value: float = 1.0

    # Whether captured traces are cross-checked before upload
    validate_traces: bool = True


@dataclass(frozen=True)
class StorageConfig:
    base_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "autoprofiler")
    traces_dir: str = "traces"
    settings_file: Optional[str] = None

    @property
    def traces_path(self) -> Path:
        return self.base_dir / self.traces_dir


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file_enabled: bool = False
    file_name: str = "autoprofiler.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class ProfilerConfig:
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    triggers: TriggerConfig = field(default_factory=TriggerConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log: LogConfig = field(default_factory=LogConfig)
    debug: bool = False

    def ensure_directories(self) -> None:
        self.storage.base_dir.mkdir(parents=True, exist_ok=True)
        self.storage.traces_path.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls) -> "ProfilerConfig":
        scheduling = SchedulingConfig(
            enabled=_env_bool("AUTOPROFILER_ENABLED", True),
            duration=_env_seconds("AUTOPROFILER_DURATION", 30),
            configuration_update_frequency=_env_seconds("AUTOPROFILER_UPDATE_FREQUENCY", 5),
            initial_delay=_env_seconds("AUTOPROFILER_INITIAL_DELAY", 0),
            standalone_mode=_env_bool("AUTOPROFILER_STANDALONE", False),
        )

        triggers = TriggerConfig(
            cpu_threshold=_env_float("AUTOPROFILER_CPU_THRESHOLD", 80),
            cpu_cooldown=_env_seconds("AUTOPROFILER_CPU_COOLDOWN", 14400),
            memory_threshold=_env_float("AUTOPROFILER_MEMORY_THRESHOLD", 80),
            memory_cooldown=_env_seconds("AUTOPROFILER_MEMORY_COOLDOWN", 14400),
            random_overhead=_env_float("AUTOPROFILER_RANDOM_OVERHEAD", 0.01),
        )

        sampling = SamplingConfig(
            precision=_env_float("AUTOPROFILER_BUCKET_PRECISION", 0.1),
            validate_traces=_env_bool("AUTOPROFILER_VALIDATE_TRACES", True),
        )

        base_dir = Path(os.getenv("AUTOPROFILER_DATA_DIR", str(Path(tempfile.gettempdir()) / "autoprofiler")))
        storage = StorageConfig(
            base_dir=base_dir,
            settings_file=os.getenv("AUTOPROFILER_SETTINGS_FILE") or None,
        )

        log = LogConfig(
            level=os.getenv("AUTOPROFILER_LOG_LEVEL", "INFO"),
            file_enabled=_env_bool("AUTOPROFILER_LOG_FILE", False),
        )

        return cls(
            scheduling=scheduling,
            triggers=triggers,
            sampling=sampling,
            storage=storage,
            log=log,
            debug=_env_bool("AUTOPROFILER_DEBUG", False),
        )


_config: Optional[ProfilerConfig] = None


def get_config() -> ProfilerConfig:
    global _config
    if _config is None:
        _config = ProfilerConfig.from_env()
    return _config


def set_config(config: Optional[ProfilerConfig]) -> None:
    global _config
    _config = config


def setup_logging(config: Optional[ProfilerConfig] = None) -> None:
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.storage.base_dir.mkdir(parents=True, exist_ok=True)
        log_path = cfg.storage.base_dir / cfg.log.file_name
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
