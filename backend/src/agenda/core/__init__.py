from .errors import (
    AgendaError,
    ValidationError,
    RequiredFieldError,
    InvalidRuleError,
    NotFoundError,
    EventNotFoundError,
    InvalidOccurrenceIdError,
    SchedulingConflictError,
    UnauthorizedError,
    InternalError,
    handle_exception,
)
from .utils import (
    Clock,
    FrozenClock,
    generate_event_id,
    ensure_utc,
    parse_rfc3339,
    format_iso_millis,
    to_civil,
    from_civil,
)
from .identity import OccurrenceRef
from .rules import Frequency, RecurrenceRule
from .expander import Occurrence, OccurrenceExpander
from .conflicts import ConflictDetector
