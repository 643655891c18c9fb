"""Feature catalog and static feature tables."""

from baseline_drift.features.catalog import (
    CRITICAL_FEATURES,
    FEATURE_CATALOG,
    feature_importance,
    is_known_feature,
    medical_relevance,
)

__all__ = [
    "CRITICAL_FEATURES",
    "FEATURE_CATALOG",
    "feature_importance",
    "is_known_feature",
    "medical_relevance",
]
