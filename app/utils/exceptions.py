"""
Custom exceptions for the referral reward engine.

Only structural problems raise. Business outcomes such as "no reward
configured", "no campaign" or "duplicate accrual" are regular return
values and never show up here.
"""


class ReferralEngineError(Exception):
    """Base exception for all referral engine errors."""

    def __init__(self, message: str, code: str = "REFERRAL_ENGINE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ConfigurationNotFoundError(ReferralEngineError):
    """No active referral configuration exists."""

    def __init__(self, name: str = 'default'):
        self.name = name
        super().__init__(
            f"No active referral configuration named '{name}'",
            "CONFIGURATION_NOT_FOUND"
        )


class ValidationError(ReferralEngineError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InvalidRewardInputError(ValidationError):
    """A reward computation was called with malformed arguments."""


class InvalidEventTypeError(ValidationError):
    """The event-type tag is not signup, first_purchase or a milestone."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown referral event type: {value!r}", "event_type")


class InvalidConfigurationError(ValidationError):
    """Configuration data violates a structural invariant."""
