"""
Configuration for the adaptive scan layer.

Settings are held in an explicitly constructed ScanConfiguration value that is
passed into every component. Values can be loaded from environment variables
(optionally from a .env file):

- ADAPTSCAN_ENABLED
- ADAPTSCAN_WORKERS
- ADAPTSCAN_TIMEOUT_FACTOR
- ADAPTSCAN_PERFORMANCE_MONITORING
- ADAPTSCAN_BATCH_PROCESSING
- ADAPTSCAN_SMART_RETRY
- ADAPTSCAN_TIMEOUT_MERGE
"""

import logging
import os
from dataclasses import dataclass

from colorama import Fore, Style
from dotenv import load_dotenv

from adaptscan.common.logger import setup_logger

setup_logger()
logger = logging.getLogger(__name__)

DEFAULT_WORKER_COUNT = 20
DEFAULT_ADAPTIVE_TIMEOUT_FACTOR = 0.8

MERGE_LAST = "last"
MERGE_AVERAGE = "average"
MERGE_DISCARD = "discard"
MERGE_POLICIES = (MERGE_LAST, MERGE_AVERAGE, MERGE_DISCARD)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def validate_worker_count(workers: int) -> int:
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ValueError(f"worker count must be a positive integer, got {workers!r}")
    return workers


def validate_timeout_factor(factor: float) -> float:
    factor = float(factor)
    if factor <= 0:
        raise ValueError(f"adaptive timeout factor must be positive, got {factor!r}")
    return factor


def validate_merge_policy(policy: str) -> str:
    if policy not in MERGE_POLICIES:
        raise ValueError(
            f"timeout merge policy must be one of {', '.join(MERGE_POLICIES)}, got {policy!r}"
        )
    return policy


@dataclass
class ScanConfiguration:
    """
    Settings for one or more adaptive scan sessions.

    Attributes:
        enabled (bool): Run the adaptive path instead of the baseline engine scan
        worker_count (int): Maximum number of shards scanned concurrently
        adaptive_timeout_factor (float): Operator-supplied timeout factor, logged with the session
        performance_monitoring (bool): Record session timings and emit a performance report
        batch_processing (bool): Run the strategy's per-target pre/post-processing hooks
        smart_retry (bool): Let the strategy refine retry pacing after tuning
        timeout_merge (str): How shard timeout profiles are merged after join
    """

    enabled: bool = False
    worker_count: int = DEFAULT_WORKER_COUNT
    adaptive_timeout_factor: float = DEFAULT_ADAPTIVE_TIMEOUT_FACTOR
    performance_monitoring: bool = True
    batch_processing: bool = True
    smart_retry: bool = True
    timeout_merge: str = MERGE_LAST

    def __post_init__(self):
        validate_worker_count(self.worker_count)
        self.adaptive_timeout_factor = validate_timeout_factor(
            self.adaptive_timeout_factor
        )
        validate_merge_policy(self.timeout_merge)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = bool(enabled)

    def set_worker_count(self, workers: int) -> None:
        self.worker_count = validate_worker_count(workers)

    def set_adaptive_timeout_factor(self, factor: float) -> None:
        self.adaptive_timeout_factor = validate_timeout_factor(factor)

    def set_timeout_merge(self, policy: str) -> None:
        self.timeout_merge = validate_merge_policy(policy)

    @classmethod
    def from_env(cls, envfile: str = None) -> "ScanConfiguration":
        """
        Build a configuration from environment variables.

        Args:
            envfile: Optional .env file loaded before reading the environment

        Returns:
            ScanConfiguration: Configuration with defaults for unset variables
        """
        if envfile:
            load_dotenv(envfile)
        else:
            load_dotenv()

        return cls(
            enabled=_env_bool("ADAPTSCAN_ENABLED", False),
            worker_count=int(os.getenv("ADAPTSCAN_WORKERS", DEFAULT_WORKER_COUNT)),
            adaptive_timeout_factor=float(
                os.getenv("ADAPTSCAN_TIMEOUT_FACTOR", DEFAULT_ADAPTIVE_TIMEOUT_FACTOR)
            ),
            performance_monitoring=_env_bool("ADAPTSCAN_PERFORMANCE_MONITORING", True),
            batch_processing=_env_bool("ADAPTSCAN_BATCH_PROCESSING", True),
            smart_retry=_env_bool("ADAPTSCAN_SMART_RETRY", True),
            timeout_merge=os.getenv("ADAPTSCAN_TIMEOUT_MERGE", MERGE_LAST).lower(),
        )


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def log_config(config: ScanConfiguration) -> None:
    """Log the effective configuration of a session."""
    state = (
        f"{Fore.GREEN}ENABLED{Style.RESET_ALL}"
        if config.enabled
        else f"{Fore.YELLOW}DISABLED{Style.RESET_ALL}"
    )
    logger.info(f"[CONFIG] adaptive mode: {state}")
    logger.info(
        f"[CONFIG] workers: {config.worker_count}, "
        f"timeout factor: {config.adaptive_timeout_factor}, "
        f"merge: {config.timeout_merge}"
    )
    logger.debug(
        f"[CONFIG] performance monitoring: {config.performance_monitoring}, "
        f"batch processing: {config.batch_processing}, "
        f"smart retry: {config.smart_retry}"
    )
