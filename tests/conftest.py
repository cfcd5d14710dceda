"""Global pytest configuration and fixtures."""

# Standard library imports
import sys
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

# Load test environment variables
from dotenv import load_dotenv

test_env_path = Path(__file__).parent.parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)

# Third-party imports
import pytest

# Add project root to path for ``src.`` imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Local imports
from src.domain.entities.metric import Metric
from src.infrastructure.config import EngineConfig
from src.infrastructure.monitoring.engine import MetricsEngine, create_metrics_engine

BASE_TIME = datetime(2026, 1, 5, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Settable wall clock returning timezone-aware datetimes."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0.0, **kwargs: float) -> datetime:
        self.current += timedelta(seconds=seconds, **kwargs)
        return self.current


class FakeMonotonic:
    """Settable monotonic clock for cache expiry."""

    def __init__(self, start: float = 1000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> float:
        self.current += seconds
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    """Wall clock fixed at BASE_TIME until advanced."""
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    """Monotonic clock fixed until advanced."""
    return FakeMonotonic()


@pytest.fixture
def engine_config() -> EngineConfig:
    """Default engine configuration independent of the environment."""
    return EngineConfig()


@pytest.fixture
def engine_factory(
    engine_config: EngineConfig, clock: FakeClock, monotonic: FakeMonotonic
) -> Iterator[Callable[..., MetricsEngine]]:
    """Builds engines on the fake clocks and stops their schedulers at teardown."""
    engines: list[MetricsEngine] = []

    def factory(config: EngineConfig | None = None, **kwargs: Any) -> MetricsEngine:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("cache_clock", monotonic)
        engine = create_metrics_engine(config or engine_config, **kwargs)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        engine.stop_scheduler()


@pytest.fixture
def engine(engine_factory: Callable[..., MetricsEngine]) -> MetricsEngine:
    """A fully wired engine on the fake clocks."""
    return engine_factory()


@pytest.fixture
def make_metric(clock: FakeClock) -> Callable[..., Metric]:
    """Factory for metrics stamped with the fake clock's current time."""

    def factory(
        name: str = "time",
        value: float = 100.0,
        category: str = "build",
        **kwargs: Any,
    ) -> Metric:
        kwargs.setdefault("timestamp", clock())
        return Metric(name=name, value=value, category=category, **kwargs)

    return factory
