import os
from typing import Optional, Union

from cfn_hotswap.constants import (
    DEFAULT_WAITER_DELAY,
    DEFAULT_WAITER_MAX_ATTEMPTS,
    LOG_LEVELS,
    TRACE_LOG_LEVELS,
    TRUE_STRINGS,
)


def eval_log_type(env_var_name: str) -> Union[str, bool]:
    """Get the log type from environment variable"""
    log_type = os.environ.get(env_var_name, "").lower().strip()
    return log_type if log_type in LOG_LEVELS else False


def is_env_true(env_var_name: str) -> bool:
    """Whether the given environment variable has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() in TRUE_STRINGS


def parse_int_env(env_var_name: str, default: Optional[int] = None) -> Optional[int]:
    """Parse the value of the given env variable as integer, returning the default if it is unset or invalid."""
    value = os.environ.get(env_var_name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def is_trace_logging_enabled():
    if HOTSWAP_LOG:
        log_level = str(HOTSWAP_LOG).upper()
        return log_level.lower() in TRACE_LOG_LEVELS
    return False


# log level of the hotswap engine (trace, debug, info, warn, error)
HOTSWAP_LOG = eval_log_type("HOTSWAP_LOG")
DEBUG = is_env_true("DEBUG") or HOTSWAP_LOG in TRACE_LOG_LEVELS

# seconds to wait between two readiness polls after a resource has been hotswapped
HOTSWAP_WAITER_DELAY = parse_int_env("HOTSWAP_WAITER_DELAY", DEFAULT_WAITER_DELAY)

# number of readiness polls before a hotswap operation is considered timed out
HOTSWAP_WAITER_MAX_ATTEMPTS = parse_int_env(
    "HOTSWAP_WAITER_MAX_ATTEMPTS", DEFAULT_WAITER_MAX_ATTEMPTS
)

# log the full stack trace of failed hotswap operations
HOTSWAP_VERBOSE_ERRORS = is_env_true("HOTSWAP_VERBOSE_ERRORS")

# defaults for the deployment configuration of ECS services updated by a hotswap
HOTSWAP_ECS_MINIMUM_HEALTHY_PERCENT = parse_int_env("HOTSWAP_ECS_MINIMUM_HEALTHY_PERCENT")
HOTSWAP_ECS_MAXIMUM_HEALTHY_PERCENT = parse_int_env("HOTSWAP_ECS_MAXIMUM_HEALTHY_PERCENT")
