"""
Closed catalog of behavioral features.

Every feature the upstream extractors produce is listed here per modality.
Snapshot parsing keeps only catalogued identifiers; anything else is
treated as noise from the extractor and ignored.
"""

from typing import Dict, FrozenSet, Tuple

from baseline_drift.core.constants import Modality, Severity


# ─── Known Features ──────────────────────────────────────────────────────

KEYBOARD_FEATURES: Tuple[str, ...] = (
    # dwell / flight
    "meanDwell", "dwellVariance", "dwellSkewness", "dwellKurtosis",
    "meanFlight", "flightVariance", "flightSkewness",
    # rhythm
    "typingRhythm", "rhythmVariance", "syncopationIndex",
    # pressure
    "pressureMean", "pressureVariance", "forceVariability",
    # pauses
    "pauseFrequency", "hesitationIndex", "backspaceRate",
    # neuromotor
    "tremorInKeystrokes", "motorSlowness", "fatigueIndex",
    # cognitive load
    "cognitiveLoad", "workingMemoryStrain", "attentionalLapses",
    # entropy
    "dwellEntropy", "flightEntropy", "sequenceEntropy",
    "microRhythm", "temporalPrecision", "adaptiveControl",
    # summary
    "totalKeystrokes", "typingSpeed", "errorRate", "sessionDuration",
)

MOUSE_FEATURES: Tuple[str, ...] = (
    "meanVelocity", "maxVelocity", "velocityVariance", "velocitySkewness",
    "meanAcceleration", "accelerationVariance", "jerkMetric",
    "straightnessIndex", "tortuosity", "pauseFrequency", "movementEfficiency",
    "tremorFrequency", "tremorAmplitude", "tremorPower",
    "clickAccuracy", "dwellTime", "scrollSmoothnessIndex",
    "reactionTime", "movementTime", "idleTime",
    "fractalDimension", "entropy",
    "motorControl",
)

SCROLL_FEATURES: Tuple[str, ...] = (
    "meanScrollVelocity", "maxScrollVelocity", "scrollAcceleration", "velocityVariance",
    "verticalScrollRatio", "scrollDirectionChanges", "scrollConsistency", "scrollRhythm",
    "scrollEfficiency", "backtrackingIndex", "targetingAccuracy",
    "readingSpeed", "attentionSpan", "skimmingBehavior", "detailedReading",
    "scrollTremor", "motorControl", "intentionalityIndex",
    "scrollHesitation", "decisionTime", "explorationIndex",
    "scrollFatigue", "attentionLapses", "engagementLevel",
    "scrollSessionDuration", "totalScrollDistance", "scrollActionCount", "averageScrollDelta",
)

FOCUS_FEATURES: Tuple[str, ...] = (
    "totalFocusTime", "totalBlurTime", "focusRatio", "averageFocusDuration",
    "focusFragmentation", "attentionSpan", "sustainedAttentionIndex",
    "distractionFrequency", "multitaskingIndex", "contextSwitchingCost",
    "focusStability", "attentionalControl", "cognitiveFlexibility",
    "focusRhythm", "attentionCycles", "peakAttentionPeriods",
    "attentionFatigue", "vigilanceDecrement", "recoveryEfficiency",
    "activityFocusCorrelation", "idlenessToleranceIndex", "stimulationSeeking",
    "executiveAttention", "alertingNetwork", "orientingNetwork",
    "sessionDuration", "totalFocusEvents", "totalBlurEvents", "averageActivityLevel",
)

COMPOSITE_FEATURES: Tuple[str, ...] = (
    "globalTimingEntropy", "crossModalSynchrony", "temporalCoherence",
    "masterRhythm", "rhythmicComplexity", "polyrhythmicIndex",
    "attentionMotorCoherence", "cognitiveMotorIntegration", "executiveTimingControl",
    "globalNeuromotorIndex", "bradykinesiaComposite", "dysrhythmiaIndex",
    "compositeVitality", "fatigueProgression", "adaptiveCapacity",
    "mutualInformation", "transferEntropy", "complexityIndex",
    "timingPrecision", "temporalVariability", "clockingAccuracy",
    "globalCognitiveLoad", "workingMemoryPressure", "attentionalCapacity",
    "behavioralConsistency", "personalityIndex", "adaptationRate",
)

FEATURE_CATALOG: Dict[Modality, FrozenSet[str]] = {
    Modality.KEYBOARD: frozenset(KEYBOARD_FEATURES),
    Modality.MOUSE: frozenset(MOUSE_FEATURES),
    Modality.SCROLL: frozenset(SCROLL_FEATURES),
    Modality.FOCUS: frozenset(FOCUS_FEATURES),
    Modality.COMPOSITE: frozenset(COMPOSITE_FEATURES),
}


def is_known_feature(modality: Modality, feature: str) -> bool:
    """Check whether a feature identifier belongs to a modality's catalog."""
    return feature in FEATURE_CATALOG.get(Modality(modality), frozenset())


# ─── Static Tables ───────────────────────────────────────────────────────

DEFAULT_IMPORTANCE = 0.5

FEATURE_IMPORTANCE: Dict[str, float] = {
    # primary
    "meanDwell": 0.9,
    "typingRhythm": 0.85,
    "tremorAmplitude": 0.9,
    "globalTimingEntropy": 0.8,
    "focusRatio": 0.8,
    # secondary
    "velocityVariance": 0.6,
    "scrollTremor": 0.7,
    "cognitiveLoad": 0.75,
    # tertiary
    "entropy": 0.4,
    "sessionDuration": 0.3,
}

FEATURE_MEDICAL_RELEVANCE: Dict[str, Severity] = {
    "tremorInKeystrokes": Severity.CRITICAL,
    "tremorAmplitude": Severity.CRITICAL,
    "globalNeuromotorIndex": Severity.CRITICAL,
    "motorSlowness": Severity.HIGH,
    "attentionalControl": Severity.HIGH,
    "typingRhythm": Severity.HIGH,
    "cognitiveLoad": Severity.MEDIUM,
}


def feature_importance(feature: str) -> float:
    return FEATURE_IMPORTANCE.get(feature, DEFAULT_IMPORTANCE)


def medical_relevance(feature: str) -> Severity:
    return FEATURE_MEDICAL_RELEVANCE.get(feature, Severity.LOW)


# ─── Domain Tags ─────────────────────────────────────────────────────────
# Each domain names the anomalies that count toward it, per modality.

NEUROMOTOR_FEATURES: Dict[Modality, FrozenSet[str]] = {
    Modality.KEYBOARD: frozenset({"tremorInKeystrokes", "motorSlowness"}),
    Modality.MOUSE: frozenset({"tremorAmplitude", "motorControl"}),
    Modality.COMPOSITE: frozenset({"globalNeuromotorIndex", "bradykinesiaComposite"}),
}

COGNITIVE_FEATURES: Dict[Modality, FrozenSet[str]] = {
    Modality.KEYBOARD: frozenset({"cognitiveLoad", "workingMemoryStrain", "attentionalLapses"}),
    Modality.FOCUS: frozenset({"attentionalControl", "cognitiveFlexibility"}),
    Modality.COMPOSITE: frozenset({"globalCognitiveLoad", "attentionalCapacity"}),
}

TEMPORAL_FEATURES: Dict[Modality, FrozenSet[str]] = {
    Modality.KEYBOARD: frozenset({"typingRhythm", "syncopationIndex", "microRhythm"}),
    Modality.COMPOSITE: frozenset({"globalTimingEntropy", "masterRhythm"}),
}

TREMOR_FEATURES: FrozenSet[str] = frozenset({
    "tremorInKeystrokes",
    "tremorAmplitude",
    "scrollTremor",
    "globalNeuromotorIndex",
})

# Primary drifting features with these names raise medical significance
NEUROLOGICAL_FEATURES: FrozenSet[str] = frozenset({
    "tremorInKeystrokes",
    "tremorAmplitude",
    "motorSlowness",
    "globalNeuromotorIndex",
})

CRITICAL_FEATURES: Tuple[str, ...] = (
    "meanDwell",
    "typingRhythm",
    "tremorAmplitude",
    "focusRatio",
    "globalTimingEntropy",
    "globalNeuromotorIndex",
)

# Cross-modal features compared between the two halves of a buffer for stability
STABILITY_FEATURES: Tuple[Tuple[Modality, str], ...] = (
    (Modality.KEYBOARD, "meanDwell"),
    (Modality.KEYBOARD, "typingRhythm"),
    (Modality.MOUSE, "meanVelocity"),
    (Modality.FOCUS, "focusRatio"),
    (Modality.COMPOSITE, "globalTimingEntropy"),
)

SESSION_DURATION_SOURCES: Tuple[Tuple[Modality, str], ...] = (
    (Modality.KEYBOARD, "sessionDuration"),
    (Modality.FOCUS, "sessionDuration"),
)
