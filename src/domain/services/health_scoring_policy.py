"""
Health Scoring Policy Service - Domain Layer

This service contains the business rules for category health: how recent
observations, open alerts and data staleness map onto the availability,
performance and reliability sub-scores, and how the overall score maps onto a
health level. Every mapping is monotonic: a worse input never raises a score.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime

from ..value_objects.health import HealthLevel, HealthStatus, HealthSubScores
from .threshold_policy_service import ThresholdPolicy


@dataclass(frozen=True)
class HealthScoringProfile:
    """Penalties applied while scoring one category."""

    critical_alert_penalty: float = 25.0
    warning_alert_penalty: float = 10.0
    max_staleness_penalty: float = 50.0
    stale_after_seconds: float = 300.0
    # Full staleness penalty is reached at stale_after * (1 + ramp)
    stale_ramp_factor: float = 3.0


@dataclass(frozen=True)
class CategorySignals:
    """Inputs for scoring one category."""

    category: str
    # (recent average value, policy) for every thresholded series with recent data
    observations: list[tuple[float, ThresholdPolicy]] = field(default_factory=list)
    open_critical_alerts: int = 0
    open_warning_alerts: int = 0
    # None when the category holds no observation at all
    seconds_since_last_observation: float | None = None


class HealthScoringPolicy:
    """
    Domain service for category health policies.

    Score bands are closed on their lower side: healthy at 80 and above,
    degraded from 60 up to 80, critical below 60.
    """

    HEALTHY_MIN_SCORE = 80
    DEGRADED_MIN_SCORE = 60

    # Category-specific penalties; unknown categories use the default profile
    DEFAULT_PROFILES = {
        "system": HealthScoringProfile(critical_alert_penalty=30.0, warning_alert_penalty=10.0),
        "build": HealthScoringProfile(critical_alert_penalty=20.0, warning_alert_penalty=5.0),
        "usage": HealthScoringProfile(critical_alert_penalty=15.0, warning_alert_penalty=5.0),
    }

    def __init__(
        self,
        default_profile: HealthScoringProfile | None = None,
        profiles: dict[str, HealthScoringProfile] | None = None,
        stale_after_seconds: float | None = None,
    ) -> None:
        """
        Initialize health scoring policy.

        Args:
            default_profile: Profile for categories without their own
            profiles: Category profiles, defaults to DEFAULT_PROFILES
            stale_after_seconds: Applied to every profile when given
        """
        self.default_profile = default_profile or HealthScoringProfile()
        self.profiles = dict(self.DEFAULT_PROFILES if profiles is None else profiles)

        if stale_after_seconds is not None:
            self.default_profile = replace(
                self.default_profile, stale_after_seconds=stale_after_seconds
            )
            self.profiles = {
                category: replace(profile, stale_after_seconds=stale_after_seconds)
                for category, profile in self.profiles.items()
            }

    def profile_for(self, category: str) -> HealthScoringProfile:
        return self.profiles.get(category, self.default_profile)

    def register_profile(self, category: str, profile: HealthScoringProfile) -> None:
        self.profiles[category] = profile

    def level_for(self, score: float) -> HealthLevel:
        """Map an overall score onto a health level."""
        if score >= self.HEALTHY_MIN_SCORE:
            return HealthLevel.HEALTHY
        if score >= self.DEGRADED_MIN_SCORE:
            return HealthLevel.DEGRADED
        return HealthLevel.CRITICAL

    def staleness_factor(self, age_seconds: float | None, profile: HealthScoringProfile) -> float:
        """
        Fraction of the staleness penalty to apply, in [0, 1].

        Zero while data is fresher than ``stale_after_seconds``, then rising
        linearly to one.
        """
        if age_seconds is None:
            return 1.0
        if age_seconds <= profile.stale_after_seconds:
            return 0.0
        ramp = profile.stale_after_seconds * profile.stale_ramp_factor
        if ramp <= 0:
            return 1.0
        return min(1.0, (age_seconds - profile.stale_after_seconds) / ramp)

    def threshold_score(self, value: float, policy: ThresholdPolicy) -> float:
        """
        Score a recent value against its thresholds.

        100 -> 80 from zero up to warning, 80 -> 50 between warning and
        critical, 50 -> 0 from critical up to twice critical.
        """
        warning, critical = policy.warning, policy.critical

        if value >= critical:
            if critical != 0:
                overshoot = (value - critical) / abs(critical)
            else:
                overshoot = 1.0 if value > critical else 0.0
            return max(0.0, 50.0 - 50.0 * min(overshoot, 1.0))

        if value >= warning:
            span = critical - warning
            fraction = (value - warning) / span if span > 0 else 1.0
            return 80.0 - 30.0 * fraction

        if warning > 0 and value > 0:
            return 100.0 - 20.0 * (value / warning)

        return 100.0

    def calculate_sub_scores(self, signals: CategorySignals) -> HealthSubScores:
        """
        Calculate availability, performance and reliability for a category.

        Args:
            signals: Category inputs

        Returns:
            HealthSubScores, each clamped to [0, 100]
        """
        profile = self.profile_for(signals.category)
        staleness = self.staleness_factor(signals.seconds_since_last_observation, profile)
        staleness_penalty = staleness * profile.max_staleness_penalty

        availability = 100.0 - staleness_penalty

        if signals.observations:
            scores = [self.threshold_score(value, policy) for value, policy in signals.observations]
            performance = sum(scores) / len(scores)
        else:
            performance = 100.0

        reliability = (
            100.0
            - signals.open_critical_alerts * profile.critical_alert_penalty
            - signals.open_warning_alerts * profile.warning_alert_penalty
            - staleness_penalty
        )

        return HealthSubScores(
            availability=self._clamp(availability),
            performance=self._clamp(performance),
            reliability=self._clamp(reliability),
        )

    def evaluate(self, signals: CategorySignals, checked_at: datetime) -> HealthStatus:
        """
        Comprehensive category health evaluation.

        Args:
            signals: Category inputs
            checked_at: Evaluation time

        Returns:
            HealthStatus with sub-scores, overall score and level
        """
        sub_scores = self.calculate_sub_scores(signals)
        score = int(round(self._clamp(sub_scores.mean())))

        return HealthStatus(
            category=signals.category,
            status=self.level_for(score),
            score=score,
            metrics=sub_scores,
            last_checked=checked_at,
            open_alerts=signals.open_critical_alerts + signals.open_warning_alerts,
        )

    @staticmethod
    def _clamp(value: float) -> float:
        return max(0.0, min(100.0, value))
