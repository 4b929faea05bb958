"""Alert feed for the NisseKomm dashboard.

The feed is built from four sources: unresolved crises, story milestone
celebrations, the historical daily alerts and general milestones. All
builders are pure; the HH:MM display timestamp is the only environmental
input and it comes from the injected clock.
"""

from nissekomm.models import Alert

MAX_ALERTS = 8

PRIORITY_ORDER = {"critical": 0, "warning": 1, "info": 2}

# (crisis, first day, text)
CRISIS_ALERTS = (
    ("antenna", 11, "KRITISK: ANTENNE-SYSTEM NEDE! Meldinger når ikke fram."),
    ("inventory", 16, "KRITISK: INVENTAR-SYSTEM KRASJET! Lageret trenger hjelp."),
)

# (completed day, text, type)
STORY_MILESTONES = (
    (5, "WINTER: Brevfuglene er samlet i tårnet igjen.", "info"),
    (12, "PIL: Brevfuglene har funnet den gamle ruten!", "info"),
    (14, "JULIUS: Brevfugl-mysteriet er løst!", "info"),
    (8, "IQ: Den magiske sekken virker. Den passer bare ikke gjennom døra.", "info"),
    (19, "IQ: Rakettsleden tok av! To meter, men likevel.", "info"),
    (7, "ORAKELET: Mørket lurer der ute. Hold lyset tent.", "warning"),
    (21, "RUDOLF: Nesen lyser igjen! Mørket er drevet tilbake.", "info"),
    (9, "JULIUS: Atten snøfnugg talt. Mønsteret er vakkert!", "info"),
    (13, "LUCIA: Frostkartet er komplett!", "info"),
    (10, "PIL: Prismet henter fargene tilbake!", "info"),
    (15, "WINTER: Fargekoden er knekt. Snøfall er fargerikt igjen!", "info"),
    (18, "JULIUS: Stjernene viser ruten for sleden.", "info"),
    (20, "NISSENE: Reinsdyrene er klare for avreise!", "info"),
)

# (completed day, text, type)
GENERAL_MILESTONES = (
    (8, "NISSENE: Første uke fullført!", "info"),
    (16, "WINTER: Halvveis! Gaveproduksjonen er på topp.", "info"),
    (22, "ORAKELET: To dager igjen! Magien intensiveres.", "warning"),
)


def crisis_alerts(day: int, crisis_status: dict[str, bool], timestamp: str) -> list[Alert]:
    """Critical alerts for every crisis that has started and is unresolved."""
    return [
        Alert(text=text, type="critical", timestamp=timestamp, day=start_day)
        for crisis, start_day, text in CRISIS_ALERTS
        if day >= start_day and not crisis_status.get(crisis, False)
    ]


def _milestones(table, day: int, completed_days, timestamp: str) -> list[Alert]:
    return [
        Alert(text=text, type=alert_type, timestamp=timestamp, day=milestone_day)
        for milestone_day, text, alert_type in table
        if day >= milestone_day and milestone_day in completed_days
    ]


def story_milestone_alerts(day: int, completed_days, timestamp: str) -> list[Alert]:
    return _milestones(STORY_MILESTONES, day, completed_days, timestamp)


def general_milestone_alerts(day: int, completed_days, timestamp: str) -> list[Alert]:
    """Week one complete, halfway and final countdown."""
    return _milestones(GENERAL_MILESTONES, day, completed_days, timestamp)


def daily_narrative_alerts(daily_alert_data, day: int, timestamp: str) -> list[Alert]:
    """Every content daily alert up to and including the current day."""
    return [
        Alert(text=entry["text"], type=entry["type"], timestamp=timestamp, day=entry["day"])
        for entry in daily_alert_data
        if entry["day"] <= day
    ]


def sort_alerts_by_priority(alerts: list[Alert]) -> list[Alert]:
    """Sort critical before warning before info, newest day first within a type."""
    return sorted(alerts, key=lambda a: (PRIORITY_ORDER.get(a.type, len(PRIORITY_ORDER)), -(a.day or 0)))


def daily_alerts(day: int, completed_days, crisis_status: dict[str, bool], daily_alert_data, clock) -> list[Alert]:
    """Build the dashboard alert feed for a day.

    Args:
        day: Current day (1-24)
        completed_days: Set of completed quest days
        crisis_status: Crisis name mapped to resolved flag
        daily_alert_data: Daily alert entries from static content
        clock: Clock used for the HH:MM display timestamp

    Returns:
        At most 8 alerts, sorted by priority
    """
    timestamp = clock.hhmm()

    alerts = []
    alerts.extend(crisis_alerts(day, crisis_status, timestamp))
    alerts.extend(story_milestone_alerts(day, completed_days, timestamp))
    alerts.extend(daily_narrative_alerts(daily_alert_data, day, timestamp))
    alerts.extend(general_milestone_alerts(day, completed_days, timestamp))

    return sort_alerts_by_priority(alerts)[:MAX_ALERTS]
