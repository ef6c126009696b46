"""Keyword heuristic risk scoring for single images and image sets."""

import math
from collections.abc import Iterable

from home_scan.domain.analysis import DetectedObject, ImageAnalysis, RiskLevel, Tag

POSITIVE_KEYWORDS: tuple[str, ...] = (
    "lock",
    "deadbolt",
    "security",
    "reinforced",
    "metal",
    "steel",
    "alarm",
    "camera",
    "sensor",
    "bolt",
    "chain",
    "keypad",
    "smart lock",
    "double glazed",
    "tempered",
    "bars",
    "grille",
    "peephole",
    "intercom",
    "video doorbell",
    "motion sensor",
)

NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "broken",
    "damaged",
    "crack",
    "rust",
    "old",
    "worn",
    "unlocked",
    "open",
    "gap",
    "hole",
    "weak",
    "rotted",
    "single pane",
    "flimsy",
    "loose",
)

VULNERABILITY_KEYWORDS: tuple[str, ...] = (
    "window",
    "door",
    "glass",
    "wooden",
    "sliding",
    "basement",
    "ground floor",
    "accessible",
    "low",
    "entry point",
)

NEUTRAL_SCORE = 5.0
MIN_SCORE = 1.0
MAX_SCORE = 10.0
POSITIVE_WEIGHT = 0.5
NEGATIVE_WEIGHT = 0.7
UNGUARDED_ENTRY_PENALTY = 1.0

LEVEL_WEIGHTS: dict[RiskLevel, float] = {
    RiskLevel.HIGH: 2.0,
    RiskLevel.MEDIUM: 1.5,
    RiskLevel.LOW: 1.0,
}

DAMAGE_RECOMMENDATION = "Consider addressing the identified damage or wear issues"
ENTRY_POINT_RECOMMENDATION = (
    "Consider adding visible security measures to this entry point"
)
WINDOW_LOCK_RECOMMENDATION = "Add window locks for enhanced security"
DEADBOLT_RECOMMENDATION = "Consider installing a deadbolt for added door security"
GLASS_RECOMMENDATION = (
    "Consider security film or reinforced glass for vulnerable windows"
)
SLIDING_RECOMMENDATION = "Add a security bar or pin lock to sliding doors/windows"
GENERIC_NOTE = (
    "Standard security assessment - no significant features or issues detected"
)
GENERIC_RECOMMENDATION = (
    "Consider a professional security assessment for detailed recommendations"
)


def calculate_risk_score(
    tags: list[Tag],
    caption: str,
    detected_objects: list[DetectedObject],
    location_risk_factor: float = 1.0,
) -> ImageAnalysis:
    """Score an image from its vision signals.

    The score starts neutral, moves up for visible security features and
    down for damage or unguarded entry points, is scaled by the location
    factor (below 1 for lower-risk areas, above 1 for higher-risk areas)
    and is clamped to [1, 10] where 1 is the highest risk.
    """
    text = _searchable_text(tags, caption, detected_objects)
    score = NEUTRAL_SCORE
    notes: list[str] = []
    recommendations: list[str] = []

    positives = _matches(text, POSITIVE_KEYWORDS)
    if positives:
        score += len(positives) * POSITIVE_WEIGHT
        notes.append(f"Security features detected: {', '.join(positives)}")

    negatives = _matches(text, NEGATIVE_KEYWORDS)
    if negatives:
        score -= len(negatives) * NEGATIVE_WEIGHT
        notes.append(f"Potential issues detected: {', '.join(negatives)}")
        recommendations.append(DAMAGE_RECOMMENDATION)

    vulnerabilities = _matches(text, VULNERABILITY_KEYWORDS)
    if vulnerabilities and not positives:
        score -= UNGUARDED_ENTRY_PENALTY
        notes.append("Entry point detected without visible security features")
        recommendations.append(ENTRY_POINT_RECOMMENDATION)

    if "window" in text and "lock" not in text:
        recommendations.append(WINDOW_LOCK_RECOMMENDATION)
    if "door" in text and "deadbolt" not in text:
        recommendations.append(DEADBOLT_RECOMMENDATION)
    if "glass" in text and "tempered" not in text and "reinforced" not in text:
        recommendations.append(GLASS_RECOMMENDATION)
    if "sliding" in text:
        recommendations.append(SLIDING_RECOMMENDATION)

    score = round_half_up(_clamp(score * location_risk_factor))

    if not notes:
        notes.append(GENERIC_NOTE)
        recommendations.append(GENERIC_RECOMMENDATION)

    return ImageAnalysis(
        tags=tags,
        caption=caption,
        detected_objects=detected_objects,
        risk_score=score,
        risk_level=classify_risk_level(score),
        risk_notes=notes,
        recommendations=dedupe(recommendations),
    )


def calculate_overall_risk_score(analyses: Iterable[ImageAnalysis]) -> float:
    """Return the level-weighted mean score, or the neutral score when empty."""
    total_weight = 0.0
    weighted_sum = 0.0
    for analysis in analyses:
        weight = LEVEL_WEIGHTS[analysis.risk_level]
        weighted_sum += analysis.risk_score * weight
        total_weight += weight
    if total_weight == 0:
        return NEUTRAL_SCORE
    return round_half_up(weighted_sum / total_weight)


def classify_risk_level(score: float) -> RiskLevel:
    """Map a numeric score to its risk band."""
    if score <= 3:
        return RiskLevel.HIGH
    if score <= 6:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def round_half_up(value: float) -> float:
    """Round to one decimal place with halves rounding up."""
    return math.floor(value * 10 + 0.5) / 10


def dedupe(values: Iterable[str]) -> list[str]:
    """Drop repeated entries, keeping first occurrences in order."""
    return list(dict.fromkeys(values))


def _searchable_text(
    tags: list[Tag], caption: str, detected_objects: list[DetectedObject]
) -> str:
    parts = [(caption or "").lower()]
    parts.extend((tag.name or "").lower() for tag in tags)
    parts.extend((obj.name or "").lower() for obj in detected_objects)
    return " ".join(parts)


def _matches(text: str, keywords: tuple[str, ...]) -> list[str]:
    return [keyword for keyword in keywords if keyword in text]


def _clamp(score: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, score))
