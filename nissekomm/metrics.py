"""Cosmetic dashboard metrics.

Everything here is a pure function of its arguments. The values only drive
the flavor dashboard; no game rule depends on them.
"""

import math
from datetime import datetime

from nissekomm.models import SystemMetric
from nissekomm.progression import arc_progress_percentage


def sigmoid_value(min_value: float, max_value: float, day: int, k: float = 0.4, midpoint: float = 12) -> int:
    """S-curve from min_value towards max_value over the 24 days.

    Returns:
        round(min + (max - min) / (1 + e^(-k * (day - midpoint))))
    """
    return round(min_value + (max_value - min_value) / (1 + math.exp(-k * (day - midpoint))))


def status_from_ratio(value: float, max_value: float) -> str:
    """Classify a metric: below 50% critical, below 75% warning, else normal."""
    ratio = value / max_value if max_value else 0
    if ratio < 0.5:
        return "critical"
    if ratio < 0.75:
        return "warning"
    return "normal"


def progressive_metrics(day: int, crisis_status: dict[str, bool], catalog) -> list[SystemMetric]:
    """System metrics for a day.

    Metrics are revealed by their unlock_day and follow the sigmoid curve. A
    crisis event that has started and whose crisis flag is unresolved freezes
    its metric at crisis_value and forces the crisis status.

    Args:
        day: Current day (1-24)
        crisis_status: Crisis name mapped to resolved flag
        catalog: Catalog with system_metrics and progression_config

    Returns:
        List of SystemMetric in content order
    """
    config = catalog.progression_config or {}
    sigmoid = config.get("sigmoid", {})
    k = sigmoid.get("k", 0.4)
    midpoint = sigmoid.get("midpoint", 12)
    crisis_events = config.get("crisis_events", [])

    metrics = []
    for metric in catalog.system_metrics:
        if metric["unlock_day"] > day:
            continue

        value = sigmoid_value(metric["min"], metric["max"], day, k, midpoint)
        status = status_from_ratio(value, metric["max"])

        crisis = next(
            (c for c in crisis_events if c["affected_metric"] == metric["name"] and c["day"] <= day),
            None,
        )
        if crisis and not crisis_status.get(crisis.get("crisis"), False):
            value = crisis["crisis_value"]
            status = crisis.get("status") or status_from_ratio(value, metric["max"])

        metrics.append(SystemMetric(name=metric["name"], value=value, max=metric["max"], status=status))

    return metrics


def story_arc_metrics(day: int, completed_days, catalog) -> list[SystemMetric]:
    """Themed progress metrics for the major story arcs.

    Only arcs spanning three or more days are shown, and only once their
    first_unlock_day has been reached. Arcs flagged inverted_metric (a
    threat level) use stricter thresholds.
    """
    metrics = []
    for arc in catalog.story_arcs:
        if len(catalog.arc_quests(arc.arc_id)) < 3:
            continue
        if day < arc.first_unlock_day:
            continue

        progress = arc_progress_percentage(catalog, arc.arc_id, completed_days)
        if arc.inverted_metric:
            status = "normal" if progress > 70 else "warning" if progress > 40 else "critical"
        elif progress < 30:
            status = "critical"
        elif progress < 60:
            status = "warning"
        else:
            status = "normal"

        metrics.append(SystemMetric(name=f"{arc.name}: {arc.metric_label}", value=progress, max=100, status=status))

    return metrics


def christmas_countdown(now: datetime) -> dict:
    """Time left until Christmas Eve (24 December, 23:59:59).

    Returns:
        Dict with days, hours, minutes, seconds, is_christmas and
        urgency_level (calm, approaching, urgent, critical or today)
    """
    year = now.year
    if now.month == 12 and now.day > 24:
        year += 1
    christmas_eve = datetime(year, 12, 24, 23, 59, 59, tzinfo=now.tzinfo)

    diff = (christmas_eve - now).total_seconds()
    is_christmas = now.month == 12 and now.day == 24

    if diff <= 0 or is_christmas:
        return {
            "days": 0,
            "hours": 0,
            "minutes": 0,
            "seconds": 0,
            "is_christmas": True,
            "urgency_level": "today",
        }

    total = int(diff)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if days > 14:
        urgency = "calm"
    elif days >= 8:
        urgency = "approaching"
    elif days >= 4:
        urgency = "urgent"
    else:
        urgency = "critical"

    return {
        "days": days,
        "hours": hours,
        "minutes": minutes,
        "seconds": seconds,
        "is_christmas": False,
        "urgency_level": urgency,
    }
