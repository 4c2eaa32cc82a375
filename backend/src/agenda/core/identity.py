# Virtual occurrence identifiers
# Wire format: {master_id}_{YYYY-MM-DDTHH:MM:SS.mmmZ}

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .utils import format_iso_millis, parse_rfc3339

SEPARATOR = "_"


@dataclass(frozen=True)
class OccurrenceRef:
    parent_id: str
    instant: datetime


def encode(parent_id: str, instant: datetime) -> str:
    return f"{parent_id}{SEPARATOR}{format_iso_millis(instant)}"


def decode(occurrence_id: str) -> Optional[OccurrenceRef]:
    """
    Split an occurrence id into its master id and instant.

    The split happens at the last separator so master ids containing the
    separator survive. Returns None when there is no separator, the master
    part is empty, or the suffix is not an ISO-8601 instant.
    """
    index = occurrence_id.rfind(SEPARATOR)
    if index <= 0:
        return None

    parent_id = occurrence_id[:index]
    suffix = occurrence_id[index + len(SEPARATOR):]
    # Require a time component so plain "_2026" style suffixes are not instants
    if "T" not in suffix:
        return None
    try:
        instant = parse_rfc3339(suffix)
    except (ValueError, OverflowError):
        return None
    return OccurrenceRef(parent_id=parent_id, instant=instant)
