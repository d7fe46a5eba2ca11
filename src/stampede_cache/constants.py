"""
Constants for stampede-cache.

Defines default values, environment variable names and error message
templates used by configuration and validation.
"""

# Default configuration (seconds)
DEFAULT_WAIT_BEFORE_STALE = 0.0  # Return stale data immediately
DEFAULT_KEY_PREFIX = ""  # No namespace

# Environment variables (explicit argument > env var > default)
ENV_SOFT_TTL = "STAMPEDE_CACHE_SOFT_TTL"
ENV_HARD_TTL = "STAMPEDE_CACHE_HARD_TTL"
ENV_LEASE_TTL = "STAMPEDE_CACHE_LEASE_TTL"
ENV_WAIT_FOR_LOCK = "STAMPEDE_CACHE_WAIT_FOR_LOCK"
ENV_RETRY_INTERVAL = "STAMPEDE_CACHE_RETRY_INTERVAL"
ENV_RETURN_STALE = "STAMPEDE_CACHE_RETURN_STALE"
ENV_WAIT_BEFORE_STALE = "STAMPEDE_CACHE_WAIT_BEFORE_STALE"
ENV_KEY_PREFIX = "STAMPEDE_CACHE_KEY_PREFIX"

TRUTHY_ENV_VALUES = frozenset({"1", "true", "yes", "on"})
FALSY_ENV_VALUES = frozenset({"0", "false", "no", "off"})

# Error message templates
ERROR_DURATION_TYPE_INVALID = "{name} must be int or float, got {type_name}"
ERROR_DURATION_NOT_POSITIVE = "{name} must be > 0, got {value}"
ERROR_DURATION_NEGATIVE = "{name} must be >= 0, got {value}"
ERROR_HARD_TTL_NOT_GREATER = "hard_ttl ({hard_ttl}) must be greater than soft_ttl ({soft_ttl})"
ERROR_RETURN_STALE_TYPE_INVALID = "return_stale must be bool, got {type_name}"
ERROR_KEY_PREFIX_TYPE_INVALID = "key_prefix must be str, got {type_name}"
ERROR_OPTION_MISSING = "{name} is required (argument or environment variable {env_name})"
ERROR_ENV_VALUE_INVALID = "environment variable {env_name} has invalid value {value!r}"
ERROR_CONFIG_AND_OPTIONS = "Pass either a CacheConfig or keyword options, not both"
