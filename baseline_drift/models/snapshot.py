"""
FeatureSnapshot data model.

One session's measured behavioral features, produced by the upstream
feature extractors. Snapshots are immutable once built.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from baseline_drift.core.constants import Modality
from baseline_drift.features.catalog import is_known_feature
from baseline_drift.utils.time import datetime_to_timestamp

logger = logging.getLogger(__name__)


def _clean_value(value: Any) -> Optional[float]:
    """Return a finite float, or None for anything that is not a measurement."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _clean_bag(modality: Modality, values: Mapping[str, Any]) -> Dict[str, float]:
    """Keep catalog features with finite numeric values."""
    cleaned = {}
    for key, value in values.items():
        if not is_known_feature(modality, key):
            logger.debug(
                f"Ignoring unknown feature {modality.value}.{key}",
                extra={"modality": modality.value, "feature": key}
            )
            continue
        number = _clean_value(value)
        if number is not None:
            cleaned[key] = number
    return cleaned


def _parse_timestamp(value: Any) -> float:
    """Unix seconds from a number or an ISO-8601 string (naive means UTC)."""
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return datetime_to_timestamp(datetime.fromisoformat(value.replace("Z", "+00:00")))
    return float(value)


@dataclass(frozen=True)
class FeatureSnapshot:
    """
    Per-session capture of extracted numeric features.

    ``features`` maps each modality to a partial mapping of feature id to
    value. Missing modalities and missing features mean "no observation",
    never zero.
    """

    timestamp: float  # unix seconds
    session_id: str
    features: Mapping[Modality, Mapping[str, float]] = field(default_factory=dict)
    environment: Mapping[str, Any] = field(default_factory=dict)
    quality: float = 1.0

    def __post_init__(self):
        """Validate field values, drop non-measurements and freeze nested mappings."""
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be between 0.0 and 1.0, got {self.quality}")

        if not self.session_id:
            raise ValueError("session_id must not be empty")

        frozen = {}
        for modality, values in self.features.items():
            modality = Modality(modality)
            cleaned = _clean_bag(modality, values)
            if cleaned:
                frozen[modality] = MappingProxyType(cleaned)

        object.__setattr__(self, "timestamp", float(self.timestamp))
        object.__setattr__(self, "features", MappingProxyType(frozen))
        object.__setattr__(self, "environment", MappingProxyType(dict(self.environment)))

    # ─── Construction ────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeatureSnapshot":
        """
        Build a snapshot from a raw extractor payload.

        Accepts modality bags either at the top level (``{"keyboard": {...}}``)
        or nested under ``"features"``. Unknown feature ids are ignored and
        non-finite, non-numeric or boolean values are dropped.

        Args:
            data: Raw payload with ``timestamp`` (unix seconds or ISO-8601), ``sessionId`` (or
                ``session_id``), modality bags, optional
                ``environmentalContext`` (or ``environment``) and ``quality``

        Returns:
            FeatureSnapshot

        Raises:
            ValueError: If timestamp or session id is missing, the timestamp cannot
                be parsed, or quality is out of range
        """
        if "timestamp" not in data:
            raise ValueError("snapshot payload has no timestamp")

        session_id = data.get("sessionId", data.get("session_id"))
        if not session_id:
            raise ValueError("snapshot payload has no session id")

        bags = data.get("features") or data
        features = {
            modality: bags[modality.value]
            for modality in Modality
            if isinstance(bags.get(modality.value), dict)
        }

        environment = data.get("environmentalContext", data.get("environment")) or {}
        quality = _clean_value(data.get("quality", 1.0))

        return cls(
            timestamp=_parse_timestamp(data["timestamp"]),
            session_id=str(session_id),
            features=features,
            environment=environment,
            quality=1.0 if quality is None else quality,
        )

    # ─── Accessors ───────────────────────────────────────────────────────

    def modality(self, modality: Modality) -> Mapping[str, float]:
        """Features observed for one modality (empty when none)."""
        return self.features.get(Modality(modality), MappingProxyType({}))

    def get(self, modality: Modality, feature: str) -> Optional[float]:
        """Single feature value, or None when not observed."""
        return self.modality(modality).get(feature)

    @property
    def feature_count(self) -> int:
        return sum(len(values) for values in self.features.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "timestamp": self.timestamp,
            "session_id": self.session_id,
            "features": {
                modality.value: dict(values)
                for modality, values in self.features.items()
            },
            "environment": dict(self.environment),
            "quality": self.quality,
        }

    def __repr__(self) -> str:
        modalities = ", ".join(m.value for m in self.features)
        return (
            f"FeatureSnapshot(session={self.session_id}, "
            f"timestamp={self.timestamp:.0f}, "
            f"quality={self.quality:.2f}, "
            f"modalities=[{modalities}])"
        )
