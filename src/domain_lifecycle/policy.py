"""
Activity retry and timeout policy shared by every workflow.
"""

from datetime import timedelta

from temporalio.common import RetryPolicy

from .exceptions import NON_RETRYABLE_ERRORS

ACTIVITY_TIMEOUT = timedelta(minutes=1)

# 0 attempts would mean unlimited; never used
MAX_ATTEMPTS = 3

RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(minutes=10),
    maximum_attempts=MAX_ATTEMPTS,
    non_retryable_error_types=NON_RETRYABLE_ERRORS,
)


def activity_options() -> dict:
    """Keyword arguments for ``workflow.execute_activity_method``."""
    return {
        "start_to_close_timeout": ACTIVITY_TIMEOUT,
        "retry_policy": RETRY_POLICY,
    }
