"""Repair free-text language model output into a strict security report."""

import json
import logging
import math
import re
from datetime import date
from enum import Enum
from typing import TypeVar

from home_scan.domain.errors import MalformedReportError
from home_scan.domain.reports import (
    AreaAnalysis,
    ConfidenceLevel,
    EffortCostLevel,
    ExposureRisk,
    PrioritizedRecommendation,
    SecurityReport,
    SecurityReportHeader,
)

_logger = logging.getLogger(__name__)

_JSON_SPAN = re.compile(r"\{.*\}", re.DOTALL)

DEFAULT_SUMMARY = "Security assessment completed."
DEFAULT_AREA = "Unknown Area"
DEFAULT_CONCLUSION = "Assessment complete."

EnumT = TypeVar("EnumT", bound=Enum)


def normalize_report(
    raw: str | None, today: date | None = None
) -> SecurityReport | None:
    """Return a valid report, or ``None`` when the output holds no usable JSON."""
    try:
        return parse_security_report(raw or "", today=today)
    except MalformedReportError as exc:
        _logger.warning("Discarding malformed security report: %s", exc)
        return None


def parse_security_report(raw: str, today: date | None = None) -> SecurityReport:
    """Parse the outermost JSON object in ``raw`` and fill in safe defaults.

    Raises ``MalformedReportError`` when there is no JSON object to parse.
    Every other defect (unknown enum values, missing strings, wrong types)
    is replaced with a default instead of failing.
    """
    parsed = _extract_json_object(raw)
    header = _as_dict(parsed.get("header"))
    areas = [_area(item) for item in _as_list(parsed.get("areas"))]
    recommendations = _prioritized(_as_list(parsed.get("prioritizedRecommendations")))
    limitations = parsed.get("limitations")

    return SecurityReport(
        header=SecurityReportHeader(
            overall_exposure_risk=_choice(
                header.get("overallExposureRisk"), ExposureRisk, ExposureRisk.MEDIUM
            ),
            overall_confidence=_choice(
                header.get("overallConfidence"),
                ConfidenceLevel,
                ConfidenceLevel.MEDIUM,
            ),
            summary=_text(header.get("summary"), DEFAULT_SUMMARY),
            date=_text(header.get("date"), _format_date(today or date.today())),
            areas_analyzed=len(areas),
        ),
        areas=areas,
        prioritized_recommendations=recommendations,
        conclusion=_text(parsed.get("conclusion"), DEFAULT_CONCLUSION),
        limitations=(
            [str(item) for item in limitations] if isinstance(limitations, list) else []
        ),
    )


def _extract_json_object(raw: str) -> dict[str, object]:
    match = _JSON_SPAN.search(raw)
    if match is None:
        raise MalformedReportError("No JSON object found in model output")
    try:
        parsed = json.loads(match.group(0))
    except (ValueError, RecursionError) as exc:
        raise MalformedReportError(f"Invalid JSON in model output: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedReportError("Model output JSON is not an object")
    return parsed


def _area(raw: object) -> AreaAnalysis:
    item = _as_dict(raw)
    return AreaAnalysis(
        area=_text(item.get("area"), DEFAULT_AREA),
        exposure_risk=_choice(
            item.get("exposureRisk"), ExposureRisk, ExposureRisk.MEDIUM
        ),
        confidence=_choice(
            item.get("confidence"), ConfidenceLevel, ConfidenceLevel.MEDIUM
        ),
        notes=_text(item.get("notes"), ""),
        recommendation=_text(item.get("recommendation"), ""),
        effort=_choice(item.get("effort"), EffortCostLevel, EffortCostLevel.MEDIUM),
        cost=_choice(item.get("cost"), EffortCostLevel, EffortCostLevel.MEDIUM),
    )


def _prioritized(raw_items: list[object]) -> list[PrioritizedRecommendation]:
    """Build recommendations whose priorities are exactly 1..n."""
    ranked: list[tuple[int, int, dict[str, object]]] = []
    for position, raw in enumerate(raw_items, start=1):
        item = _as_dict(raw)
        ranked.append((_priority(item.get("priority"), position), position, item))

    priorities = [priority for priority, _, _ in ranked]
    if sorted(priorities) != list(range(1, len(ranked) + 1)):
        ranked.sort(key=lambda entry: (entry[0], entry[1]))
        ranked = [
            (index, position, item)
            for index, (_, position, item) in enumerate(ranked, start=1)
        ]

    return [
        PrioritizedRecommendation(
            recommendation=_text(item.get("recommendation"), ""),
            effort=_choice(item.get("effort"), EffortCostLevel, EffortCostLevel.MEDIUM),
            cost=_choice(item.get("cost"), EffortCostLevel, EffortCostLevel.MEDIUM),
            priority=priority,
        )
        for priority, _, item in ranked
    ]


def _priority(value: object, position: int) -> int:
    """Return a positive integer priority, defaulting to the list position."""
    if isinstance(value, bool):
        return position
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return position
    if isinstance(value, int | float) and math.isfinite(value) and value >= 1:
        return int(value)
    return position


def _choice(value: object, enum_type: type[EnumT], default: EnumT) -> EnumT:
    if isinstance(value, str):
        for member in enum_type:
            if member.value == value:
                return member
    return default


def _text(value: object, default: str) -> str:
    if value is None or value == "" or value is False:
        return default
    return str(value)


def _as_dict(value: object) -> dict[str, object]:
    return value if isinstance(value, dict) else {}


def _as_list(value: object) -> list[object]:
    return value if isinstance(value, list) else []


def _format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")
