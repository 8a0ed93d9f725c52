"""Retry utilities for calls which fail transiently"""

import logging
import time
from typing import Callable, TypeVar

from botocore.exceptions import ClientError

LOG = logging.getLogger(__name__)

T = TypeVar("T")


def retry_on_error_code(
    function: Callable[..., T],
    error_code: str,
    retries: int = 5,
    sleep: float = 1.0,
    **kwargs,
) -> T:
    """
    Calls ``function`` with ``kwargs``, and calls it again (doubling the sleep time in between) as long as it fails
    with a botocore ``ClientError`` with the given error code. Any other error is raised immediately.
    """
    for attempt in range(retries + 1):
        try:
            return function(**kwargs)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != error_code or attempt == retries:
                raise
            LOG.debug("Call failed with %s, retrying in %.1fs", error_code, sleep)
            time.sleep(sleep)
            sleep = sleep * 2
