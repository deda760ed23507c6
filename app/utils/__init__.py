"""
Utility modules for the referral engine.
"""
from .logging_config import setup_logging, get_logger
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    not_found,
    configuration_missing,
    internal_error
)
from .exceptions import (
    ReferralEngineError,
    ConfigurationNotFoundError,
    ValidationError,
    InvalidRewardInputError,
    InvalidEventTypeError,
    InvalidConfigurationError
)
