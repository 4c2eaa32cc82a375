# Recurrence rule codec
# Parses and serializes the RFC 5545 RRULE subset the engine supports
# (FREQ, INTERVAL, BYDAY, COUNT, UNTIL, WKST) and builds dateutil generators.

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from dateutil import rrule as du_rrule

from .errors import InvalidRuleError
from .utils import ensure_utc, from_civil, get_zone, to_civil

logger = logging.getLogger(__name__)


# Index matches datetime.weekday(): Monday == 0
WEEKDAY_TOKENS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

_DATEUTIL_WEEKDAYS = (
    du_rrule.MO,
    du_rrule.TU,
    du_rrule.WE,
    du_rrule.TH,
    du_rrule.FR,
    du_rrule.SA,
    du_rrule.SU,
)

SUPPORTED_PARTS = ("FREQ", "INTERVAL", "BYDAY", "COUNT", "UNTIL", "WKST")


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


_DATEUTIL_FREQ = {
    Frequency.DAILY: du_rrule.DAILY,
    Frequency.WEEKLY: du_rrule.WEEKLY,
    Frequency.MONTHLY: du_rrule.MONTHLY,
    Frequency.YEARLY: du_rrule.YEARLY,
}


@dataclass(frozen=True)
class RecurrenceRule:
    """
    Structured recurrence rule.

    byweekday holds weekday tokens in Monday-first order; an empty tuple means
    "the start's own weekday". At most one of until/count is set. until is an
    aware UTC instant.
    """

    frequency: Frequency
    interval: int = 1
    byweekday: tuple[str, ...] = ()
    until: Optional[datetime] = None
    count: Optional[int] = None
    week_start: Optional[str] = None

    @property
    def terminator(self) -> str:
        if self.until is not None:
            return "until"
        if self.count is not None:
            return "count"
        return "none"

    @property
    def weekday_indexes(self) -> tuple[int, ...]:
        return tuple(WEEKDAY_TOKENS.index(token) for token in self.byweekday)

    def covers_weekday(self, weekday: int) -> bool:
        """
        Whether a date falling on weekday (0=Monday) passes the weekday filter.

        Without an explicit weekday set the generator anchors on the start
        itself, so every weekday counts as covered.
        """
        if not self.byweekday:
            return True
        return weekday in self.weekday_indexes


def _normalize_weekdays(indexes) -> tuple[str, ...]:
    return tuple(WEEKDAY_TOKENS[i] for i in sorted(set(indexes)))


# ============================================================================
# PARSING
# ============================================================================


def _extract_rule_body(rule_text: str) -> str:
    bodies = []
    for raw_line in rule_text.replace("\r\n", "\n").split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        upper = line.upper()
        if upper.startswith("DTSTART"):
            # The event's own start is authoritative
            continue
        if upper.startswith("RRULE:"):
            bodies.append(line[len("RRULE:"):])
        elif "=" in line and ":" not in line:
            bodies.append(line)
        else:
            name = upper.split(":", 1)[0].split(";", 1)[0]
            raise InvalidRuleError(
                f"Unsupported recurrence property: {name}", rule_text=rule_text
            )

    if not bodies:
        raise InvalidRuleError("Recurrence rule has no RRULE", rule_text=rule_text)
    if len(bodies) > 1:
        raise InvalidRuleError(
            "Only a single RRULE per event is supported", rule_text=rule_text
        )
    return bodies[0]


def _parse_positive_int(name: str, value: str, rule_text: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise InvalidRuleError(f"{name} must be an integer: {value}", rule_text=rule_text)
    if number < 1:
        raise InvalidRuleError(f"{name} must be positive: {value}", rule_text=rule_text)
    return number


def _parse_weekday_token(value: str, rule_text: str) -> str:
    token = value.strip().upper()
    if token not in WEEKDAY_TOKENS:
        raise InvalidRuleError(f"Unsupported weekday: {value}", rule_text=rule_text)
    return token


def _parse_until(value: str, zone_id: str, rule_text: str) -> datetime:
    """
    UNTIL forms:
    - 20260131T235959Z  absolute UTC
    - 20260131T235959   civil time in zone_id
    - 20260131          through the end of that civil day
    """
    try:
        if value.endswith("Z"):
            return datetime.strptime(value, "%Y%m%dT%H%M%SZ").replace(tzinfo=timezone.utc)
        if "T" in value:
            return from_civil(datetime.strptime(value, "%Y%m%dT%H%M%S"), zone_id)
        day = datetime.strptime(value, "%Y%m%d")
    except ValueError:
        raise InvalidRuleError(f"Invalid UNTIL value: {value}", rule_text=rule_text)
    return from_civil(day + timedelta(days=1) - timedelta(seconds=1), zone_id)


def parse(rule_text: str, start: datetime, zone_id: str) -> RecurrenceRule:
    """
    Parse a recurrence rule string.

    Accepts "RRULE:FREQ=WEEKLY;BYDAY=MO,WE" with or without the RRULE: prefix
    and an optional leading DTSTART line (ignored; the event start wins).

    Args:
        rule_text: Rule text as stored on the event
        start: The event start instant
        zone_id: Zone the rule's civil times are expressed in

    Raises:
        InvalidRuleError: Malformed syntax or unsupported fields
    """
    if not rule_text or not rule_text.strip():
        raise InvalidRuleError("Recurrence rule is empty", rule_text=rule_text)
    get_zone(zone_id)

    body = _extract_rule_body(rule_text.strip())

    parts: dict[str, str] = {}
    for chunk in body.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        if "=" not in chunk:
            raise InvalidRuleError(f"Malformed rule part: {chunk}", rule_text=rule_text)
        key, value = chunk.split("=", 1)
        key = key.strip().upper()
        if key not in SUPPORTED_PARTS:
            raise InvalidRuleError(f"Unsupported recurrence field: {key}", rule_text=rule_text)
        if key in parts:
            raise InvalidRuleError(f"Duplicate recurrence field: {key}", rule_text=rule_text)
        parts[key] = value.strip()

    if "FREQ" not in parts:
        raise InvalidRuleError("Recurrence rule requires FREQ", rule_text=rule_text)
    try:
        frequency = Frequency(parts["FREQ"].upper())
    except ValueError:
        raise InvalidRuleError(f"Unsupported frequency: {parts['FREQ']}", rule_text=rule_text)

    interval = 1
    if "INTERVAL" in parts:
        interval = _parse_positive_int("INTERVAL", parts["INTERVAL"], rule_text)

    byweekday: tuple[str, ...] = ()
    if parts.get("BYDAY"):
        tokens = [_parse_weekday_token(v, rule_text) for v in parts["BYDAY"].split(",")]
        byweekday = _normalize_weekdays(WEEKDAY_TOKENS.index(t) for t in tokens)

    if "COUNT" in parts and "UNTIL" in parts:
        raise InvalidRuleError("COUNT and UNTIL are mutually exclusive", rule_text=rule_text)

    count = None
    if "COUNT" in parts:
        count = _parse_positive_int("COUNT", parts["COUNT"], rule_text)

    until = None
    if "UNTIL" in parts:
        until = _parse_until(parts["UNTIL"].upper(), zone_id, rule_text)
        if until < ensure_utc(start):
            raise InvalidRuleError("UNTIL precedes the event start", rule_text=rule_text)

    week_start = None
    if "WKST" in parts:
        week_start = _parse_weekday_token(parts["WKST"], rule_text)

    return RecurrenceRule(
        frequency=frequency,
        interval=interval,
        byweekday=byweekday,
        until=until,
        count=count,
        week_start=week_start,
    )


# ============================================================================
# SERIALIZATION
# ============================================================================


def serialize(rule: RecurrenceRule) -> str:
    """Serialize to "RRULE:..." with parts in a fixed order."""
    parts = [f"FREQ={rule.frequency.value}"]
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.byweekday:
        parts.append("BYDAY=" + ",".join(rule.byweekday))
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    if rule.until is not None:
        parts.append("UNTIL=" + ensure_utc(rule.until).strftime("%Y%m%dT%H%M%SZ"))
    if rule.week_start:
        parts.append(f"WKST={rule.week_start}")
    return "RRULE:" + ";".join(parts)


# ============================================================================
# WEEKDAY SHIFT
# ============================================================================


def shift_weekdays(
    rule: RecurrenceRule,
    original_start: datetime,
    new_start: datetime,
) -> RecurrenceRule:
    """
    Rotate a weekly rule's weekday set when the series start moves.

    Every weekday moves by the same day-of-week delta (mod 7). The new start's
    own weekday is then added if the rotated set lacks it, otherwise the
    generator would silently skip the literal start date.

    Weekdays are read straight off the datetimes given, so callers pass civil
    datetimes in the event's zone. Rules that are not weekly or have no
    explicit weekday set come back unchanged.
    """
    if rule.frequency != Frequency.WEEKLY or not rule.byweekday:
        return rule

    delta = (new_start.weekday() - original_start.weekday()) % 7
    rotated = {(index + delta) % 7 for index in rule.weekday_indexes}
    if new_start.weekday() not in rotated:
        logger.debug(
            "New start weekday %s missing from rotated BYDAY %s; adding it",
            WEEKDAY_TOKENS[new_start.weekday()],
            _normalize_weekdays(rotated),
        )
        rotated.add(new_start.weekday())

    return replace(rule, byweekday=_normalize_weekdays(rotated))


# ============================================================================
# GENERATION
# ============================================================================


def build_rrule(rule: RecurrenceRule, civil_start: datetime, zone_id: str) -> du_rrule.rrule:
    """
    Build a dateutil rrule over naive civil datetimes.

    The pattern lives in civil time: dtstart is the master start as seen on the
    wall clock of zone_id and UNTIL is converted to the same frame.
    """
    kwargs = {
        "dtstart": civil_start,
        "interval": rule.interval,
    }
    if rule.byweekday:
        kwargs["byweekday"] = [_DATEUTIL_WEEKDAYS[i] for i in rule.weekday_indexes]
    if rule.count is not None:
        kwargs["count"] = rule.count
    if rule.until is not None:
        kwargs["until"] = to_civil(rule.until, zone_id)
    if rule.week_start:
        kwargs["wkst"] = _DATEUTIL_WEEKDAYS[WEEKDAY_TOKENS.index(rule.week_start)]

    return du_rrule.rrule(_DATEUTIL_FREQ[rule.frequency], **kwargs)
