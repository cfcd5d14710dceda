"""Infrastructure Layer for the Metrics Engine.

Concrete, thread-safe implementations backing the domain services:
- Bounded in-memory series storage and alert lifecycle management
- Single-flight TTL caching of aggregate queries
- Category health scoring and the background health sweep
- Environment-driven configuration
- Structured logging and OpenTelemetry counters

Example usage:
    from src.infrastructure.monitoring import create_metrics_engine
    from src.domain.entities import Metric

    engine = create_metrics_engine()
    engine.set_threshold("build", "time", warning=300, critical=600)
    engine.ingest(Metric(name="time", value=650, category="build"))
    engine.start_scheduler(60)
    ...
    engine.stop_scheduler()
"""
