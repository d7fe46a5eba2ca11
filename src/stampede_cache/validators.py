"""
Parameter validation utilities.

Validation rules for the coordinator configuration: durations must be
numeric and non-negative (most of them strictly positive), and the hard
TTL must outlive the soft TTL so that stale data can still be served.
"""

from .constants import (
    ERROR_DURATION_NEGATIVE,
    ERROR_DURATION_NOT_POSITIVE,
    ERROR_DURATION_TYPE_INVALID,
    ERROR_HARD_TTL_NOT_GREATER,
    ERROR_KEY_PREFIX_TYPE_INVALID,
    ERROR_RETURN_STALE_TYPE_INVALID,
)


class ValidationError(ValueError):
    """Parameter validation error.

    Raised when cache parameters fail validation checks.
    """

    pass


def validate_positive_duration(name: str, value: float) -> None:
    """Validate a duration that must be strictly positive.

    Args:
        name: Parameter name used in the error message
        value: Duration in seconds

    Raises:
        ValidationError: If value is not a number or is <= 0
    """
    _validate_duration_type(name, value)
    if value <= 0:
        raise ValidationError(ERROR_DURATION_NOT_POSITIVE.format(name=name, value=value))


def validate_non_negative_duration(name: str, value: float) -> None:
    """Validate a duration that may be zero.

    Raises:
        ValidationError: If value is not a number or is negative
    """
    _validate_duration_type(name, value)
    if value < 0:
        raise ValidationError(ERROR_DURATION_NEGATIVE.format(name=name, value=value))


def validate_ttl_order(soft_ttl: float, hard_ttl: float) -> None:
    """Validate that the store keeps entries longer than they stay fresh.

    Raises:
        ValidationError: If hard_ttl <= soft_ttl
    """
    if hard_ttl <= soft_ttl:
        raise ValidationError(ERROR_HARD_TTL_NOT_GREATER.format(hard_ttl=hard_ttl, soft_ttl=soft_ttl))


def validate_return_stale(return_stale: bool) -> None:
    """Validate stale-serving policy flag."""
    if not isinstance(return_stale, bool):
        raise ValidationError(ERROR_RETURN_STALE_TYPE_INVALID.format(type_name=type(return_stale).__name__))


def validate_key_prefix(key_prefix: str) -> None:
    """Validate store key prefix.

    An empty prefix is allowed (no namespace).
    """
    if not isinstance(key_prefix, str):
        raise ValidationError(ERROR_KEY_PREFIX_TYPE_INVALID.format(type_name=type(key_prefix).__name__))


def validate_cache_parameters(
    soft_ttl: float,
    hard_ttl: float,
    lease_ttl: float,
    wait_for_lock: float,
    retry_interval: float,
    return_stale: bool,
    wait_before_stale: float = 0.0,
    key_prefix: str = "",
) -> None:
    """Validate all coordinator parameters comprehensively.

    Raises:
        ValidationError: If any parameter is invalid

    Example:
        ```python
        validate_cache_parameters(
            soft_ttl=60,
            hard_ttl=3600,
            lease_ttl=10,
            wait_for_lock=5,
            retry_interval=0.05,
            return_stale=True,
        )
        ```
    """
    validate_positive_duration("soft_ttl", soft_ttl)
    validate_positive_duration("hard_ttl", hard_ttl)
    validate_ttl_order(soft_ttl, hard_ttl)
    validate_positive_duration("lease_ttl", lease_ttl)
    validate_non_negative_duration("wait_for_lock", wait_for_lock)
    validate_positive_duration("retry_interval", retry_interval)
    validate_return_stale(return_stale)
    validate_non_negative_duration("wait_before_stale", wait_before_stale)
    validate_key_prefix(key_prefix)


def _validate_duration_type(name: str, value: float) -> None:
    """Validate duration parameter type."""
    # Check for bool first since bool is subclass of int in Python
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(ERROR_DURATION_TYPE_INVALID.format(name=name, type_name=type(value).__name__))
