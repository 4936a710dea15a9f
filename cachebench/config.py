"""
Configuration, constants and enums for the cache load-testing harness.

The run is driven by a single HarnessConfig. It can be built programmatically,
from a dictionary, or from a YAML file, and is validated before any phase is
planned so that misconfiguration aborts the run up front.
"""

import enum
import os

from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Iterable, List, Optional, Set

import yaml

from cachebench.errors import ConfigurationError, ErrorCode


def check_env(setting, default_value=None):
    """
    Resolve a setting from the environment, falling back to default_value.

    String values of "true"/"false" (any case) are converted to booleans.
    """
    value = os.environ.get(setting, default_value)
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


CB_DEBUG = check_env("CB_DEBUG", False)


class EXIT_CODE(enum.IntEnum):
    SUCCESS = 0
    FAILURE = 1
    CONFIG_ERROR = 2
    ABORTED = 3
    REPORT_ERROR = 4
    INTERRUPTED = 130


class OperationKind(enum.Enum):
    PUT = "put"
    GET = "get"


class OutcomeCategory(enum.Enum):
    PUT_OK = "put_ok"
    PUT_ERROR = "put_error"
    GET_HIT = "get_hit"
    GET_MISS = "get_miss"
    GET_ERROR = "get_error"

    @classmethod
    def parse(cls, value) -> "OutcomeCategory":
        """Accept a member, its value ("get_hit") or its name ("GET_HIT")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        try:
            return cls[text.upper()]
        except KeyError:
            try:
                return cls(text.lower())
            except ValueError:
                raise ConfigurationError(
                    f"Unknown outcome category: {value}",
                    parameter="reported_categories",
                    expected=[c.name for c in cls],
                    actual=value,
                )


class KeySelection(enum.Enum):
    SEQUENTIAL = "sequential"
    RANDOM = "random"


class Distribution(enum.Enum):
    GAUSSIAN = "gaussian"
    UNIFORM = "uniform"


class ValueCopyPolicy(enum.Enum):
    NONE = "none"
    ON_STORE = "on_store"
    ON_READ = "on_read"
    BOTH = "both"

    @property
    def copies_on_store(self) -> bool:
        return self in (ValueCopyPolicy.ON_STORE, ValueCopyPolicy.BOTH)

    @property
    def copies_on_read(self) -> bool:
        return self in (ValueCopyPolicy.ON_READ, ValueCopyPolicy.BOTH)


class RunState(enum.Enum):
    INIT = "init"
    LOAD_PHASE = "load_phase"
    TEST_PHASE = "test_phase"
    SHUTDOWN = "shutdown"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.SHUTDOWN, RunState.ABORTED)


DEFAULT_CACHE_NAME = "cache1"
DEFAULT_TIER_NAME = "OnHeap"
DEFAULT_ELEMENTS_PER_THREAD = 100000
DEFAULT_PAYLOAD_SIZE_BYTES = 4096
DEFAULT_TEST_DURATION_SECONDS = 120
DEFAULT_SAMPLING_INTERVAL_MILLIS = 1000
DEFAULT_REPORT_FORMATS = ("json",)

LOAD_PHASE_NAME = "Loading phase"
TEST_PHASE_NAME = "Testing phase"

# Percentiles reported for every outcome category
LATENCY_PERCENTILES = (50, 90, 95, 99, 99.9)

_ENUM_FIELDS = {
    "distribution": Distribution,
    "value_copy_policy": ValueCopyPolicy,
}


def _default_test_concurrency() -> int:
    return os.cpu_count() or 1


@dataclass
class HarnessConfig:
    """
    Parameters for one harness run.

    The key domain of the run is [0, elements_per_thread * load_concurrency):
    every load worker populates elements_per_thread consecutive keys.
    """
    elements_per_thread: int = DEFAULT_ELEMENTS_PER_THREAD
    payload_size_bytes: int = DEFAULT_PAYLOAD_SIZE_BYTES
    load_concurrency: int = 1
    test_concurrency: int = field(default_factory=_default_test_concurrency)
    test_duration_seconds: float = DEFAULT_TEST_DURATION_SECONDS
    sampling_interval_millis: int = DEFAULT_SAMPLING_INTERVAL_MILLIS
    sampler_initial_delay_millis: Optional[int] = None
    report_output_path: Optional[str] = None
    report_formats: List[str] = field(default_factory=lambda: list(DEFAULT_REPORT_FORMATS))
    distribution: Distribution = Distribution.GAUSSIAN
    distribution_mean: Optional[int] = None
    distribution_stdev: Optional[int] = None
    reported_categories: Optional[Set[OutcomeCategory]] = None
    tier_name: str = DEFAULT_TIER_NAME
    cache_name: str = DEFAULT_CACHE_NAME
    cache_capacity: Optional[int] = None
    value_copy_policy: ValueCopyPolicy = ValueCopyPolicy.NONE
    seed: Optional[int] = None

    def __post_init__(self):
        for name, enum_cls in _ENUM_FIELDS.items():
            value = getattr(self, name)
            if not isinstance(value, enum_cls):
                try:
                    setattr(self, name, enum_cls(str(value).lower()))
                except ValueError:
                    raise ConfigurationError(
                        f"Invalid value for {name}: {value}",
                        parameter=name,
                        expected=[m.value for m in enum_cls],
                        actual=value,
                    )
        self.reported_categories = parse_categories(self.reported_categories)
        if isinstance(self.report_formats, str):
            self.report_formats = [self.report_formats]
        else:
            self.report_formats = list(self.report_formats)

    # Derived values

    @property
    def key_domain_size(self) -> int:
        return self.elements_per_thread * self.load_concurrency

    @property
    def resolved_mean(self) -> float:
        if self.distribution_mean is not None:
            return self.distribution_mean
        return self.key_domain_size // 2

    @property
    def resolved_stdev(self) -> float:
        if self.distribution_stdev is not None:
            return self.distribution_stdev
        return max(1, self.key_domain_size // 10)

    @property
    def resolved_capacity(self) -> int:
        if self.cache_capacity is not None:
            return self.cache_capacity
        return self.key_domain_size

    @property
    def sampling_interval_seconds(self) -> float:
        return self.sampling_interval_millis / 1000.0

    @property
    def sampler_initial_delay_seconds(self) -> float:
        if self.sampler_initial_delay_millis is None:
            return self.sampling_interval_seconds
        return self.sampler_initial_delay_millis / 1000.0

    def validate(self) -> "HarnessConfig":
        """
        Check types and ranges of every option.

        Returns:
            self, so calls can be chained.

        Raises:
            ConfigurationError: On the first invalid option found.
        """
        _require_int(self, "elements_per_thread", minimum=1)
        _require_int(self, "payload_size_bytes", minimum=0)
        _require_int(self, "load_concurrency", minimum=1)
        _require_int(self, "test_concurrency", minimum=1)
        _require_int(self, "sampling_interval_millis", minimum=1)
        if self.sampler_initial_delay_millis is not None:
            _require_int(self, "sampler_initial_delay_millis", minimum=0)

        if not isinstance(self.test_duration_seconds, (int, float)) or isinstance(self.test_duration_seconds, bool) \
                or self.test_duration_seconds <= 0:
            raise ConfigurationError(
                "Test duration must be a positive number of seconds",
                parameter="test_duration_seconds",
                expected="> 0",
                actual=self.test_duration_seconds,
            )

        if self.distribution_stdev is not None:
            _require_int(self, "distribution_stdev", minimum=0)
        if self.distribution_mean is not None:
            _require_int(self, "distribution_mean")
        if self.cache_capacity is not None:
            _require_int(self, "cache_capacity", minimum=1)
        if self.seed is not None:
            _require_int(self, "seed", minimum=0)

        if not self.tier_name:
            raise ConfigurationError("A tier name is required for statistics sampling",
                                     parameter="tier_name",
                                     code=ErrorCode.CONFIG_MISSING_REQUIRED)

        # Imported here: the formats package imports this module
        from cachebench.reporting.formats import FormatRegistry
        available = FormatRegistry.available_formats()
        for fmt in self.report_formats:
            if fmt not in available:
                raise ConfigurationError(
                    f"Unknown report format: {fmt}",
                    parameter="report_formats",
                    expected=available,
                    actual=fmt,
                )
        return self

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for name in _ENUM_FIELDS:
            data[name] = getattr(self, name).value
        if self.reported_categories is not None:
            data["reported_categories"] = sorted(c.name for c in self.reported_categories)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarnessConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration parameter(s): {', '.join(unknown)}",
                parameter=unknown[0],
                expected=sorted(known),
                code=ErrorCode.CONFIG_UNKNOWN_PARAMETER,
            )
        return cls(**{k: v for k, v in data.items() if v is not None})


def load_config(path: str, overrides: Optional[Dict[str, Any]] = None) -> HarnessConfig:
    """
    Load a HarnessConfig from a YAML file.

    Args:
        path: YAML file with a flat mapping of option names to values.
        overrides: Values that take precedence over the file (e.g. CLI flags).
            Keys mapped to None are ignored.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or not a mapping.
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"Configuration file not found: {path}",
                                 parameter="config_file", actual=path,
                                 code=ErrorCode.CONFIG_FILE_NOT_FOUND)
    try:
        with open(path, "r") as fd:
            data = yaml.safe_load(fd)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse configuration file: {path}",
                                 parameter="config_file", actual=str(e),
                                 code=ErrorCode.CONFIG_PARSE_ERROR) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}",
                                 parameter="config_file", expected="mapping",
                                 actual=type(data).__name__,
                                 code=ErrorCode.CONFIG_PARSE_ERROR)

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return HarnessConfig.from_dict(data)


def parse_categories(values: Optional[Iterable]) -> Optional[Set[OutcomeCategory]]:
    """Convert CLI/YAML category names into a set, None meaning "all"."""
    if values is None:
        return None
    return {OutcomeCategory.parse(v) for v in values}


def _require_int(config, name, minimum=None):
    value = getattr(config, name)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer", parameter=name,
                                 expected="int", actual=value)
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}", parameter=name,
                                 expected=f">= {minimum}", actual=value)
