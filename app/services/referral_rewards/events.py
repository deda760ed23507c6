"""
Referral event types.

Callers may pass an event object, the strings 'signup' / 'first_purchase',
or a mapping {'milestone': '<key>'}. Anything else is a caller bug and
raises InvalidEventTypeError.
"""
from dataclasses import dataclass
from typing import Optional, Union

from ...utils.exceptions import InvalidEventTypeError

SIGNUP = 'signup'
FIRST_PURCHASE = 'first_purchase'
MILESTONE = 'milestone'


@dataclass(frozen=True)
class SignupEvent:
    tag = SIGNUP
    milestone_key = None

    def to_dict(self):
        return SIGNUP


@dataclass(frozen=True)
class FirstPurchaseEvent:
    tag = FIRST_PURCHASE
    milestone_key = None

    def to_dict(self):
        return FIRST_PURCHASE


@dataclass(frozen=True)
class MilestoneEvent:
    milestone: str
    tag = MILESTONE

    def __post_init__(self):
        if not isinstance(self.milestone, str) or not self.milestone.strip():
            raise InvalidEventTypeError({MILESTONE: self.milestone})
        object.__setattr__(self, 'milestone', self.milestone.strip())

    @property
    def milestone_key(self) -> str:
        return self.milestone

    def to_dict(self):
        return {MILESTONE: self.milestone}


ReferralEvent = Union[SignupEvent, FirstPurchaseEvent, MilestoneEvent]


def parse_event_type(value) -> ReferralEvent:
    """Normalize any accepted event-type representation to an event object."""
    if isinstance(value, (SignupEvent, FirstPurchaseEvent, MilestoneEvent)):
        return value
    if isinstance(value, str):
        tag = value.strip().lower()
        if tag == SIGNUP:
            return SignupEvent()
        if tag == FIRST_PURCHASE:
            return FirstPurchaseEvent()
        raise InvalidEventTypeError(value)
    if isinstance(value, dict) and set(value) == {MILESTONE}:
        return MilestoneEvent(value[MILESTONE])
    raise InvalidEventTypeError(value)


def event_label(event: ReferralEvent) -> str:
    """Human/log label, e.g. 'signup' or 'milestone:first_booking'."""
    key: Optional[str] = event.milestone_key
    return f'{event.tag}:{key}' if key else event.tag
