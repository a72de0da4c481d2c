# Models package
from .key_value import KeyValueEntry
from .event import (
    Event,
    EventDetail,
    EventAttachment,
    EventReviewScore,
    EventReviewOtaScore,
)
