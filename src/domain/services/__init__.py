"""Domain services for business logic that spans entities."""

from .health_scoring_policy import CategorySignals, HealthScoringPolicy, HealthScoringProfile
from .threshold_policy_service import ThresholdBreach, ThresholdPolicy, ThresholdPolicyService
from .trend_analysis_service import TrendAnalysisService

__all__ = [
    "CategorySignals",
    "HealthScoringPolicy",
    "HealthScoringProfile",
    "ThresholdBreach",
    "ThresholdPolicy",
    "ThresholdPolicyService",
    "TrendAnalysisService",
]
