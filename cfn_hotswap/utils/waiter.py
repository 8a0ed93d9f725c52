"""Polling waiter for resources that are updated asynchronously by a hotswap operation."""
import json
import logging
import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, TypeVar

from cfn_hotswap import config

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class WaiterState(str, Enum):
    ABORTED = "ABORTED"
    FAILURE = "FAILURE"
    SUCCESS = "SUCCESS"
    RETRY = "RETRY"
    TIMEOUT = "TIMEOUT"


@dataclass
class WaiterResult:
    state: WaiterState
    reason: Optional[str] = None
    observed_responses: Optional[dict[str, int]] = None

    def to_json(self) -> str:
        data = {"state": self.state.value}
        if self.reason:
            data["reason"] = self.reason
        if self.observed_responses is not None:
            data["observedResponses"] = self.observed_responses
        return json.dumps(data)

    @classmethod
    def from_json(cls, value: str) -> "WaiterResult":
        data = json.loads(value)
        return cls(
            state=WaiterState(data["state"]),
            reason=data.get("reason"),
            observed_responses=data.get("observedResponses"),
        )


class WaiterError(Exception):
    """Raised by ``wait_until_state``, the message is the JSON encoded ``WaiterResult``."""

    name: str

    def __init__(self, result: WaiterResult):
        super().__init__(result.to_json())
        self.result = result


class WaiterTimeoutError(WaiterError):
    name = "TimeoutError"


class WaiterAbortError(WaiterError):
    name = "AbortError"


def wait_until_state(
    describe: Callable[[], T],
    acceptor: Callable[[T], tuple[WaiterState, str]],
    delay: float = None,
    max_attempts: int = None,
) -> T:
    """
    Calls ``describe`` until ``acceptor`` maps its response to ``SUCCESS``.

    :param describe: read-only call returning the current state of the resource
    :param acceptor: maps a response to a state and a short description of the observed response
    :param delay: seconds to sleep between two attempts, defaults to ``HOTSWAP_WAITER_DELAY``
    :param max_attempts: number of attempts, defaults to ``HOTSWAP_WAITER_MAX_ATTEMPTS``
    :return: the last response
    :raises WaiterAbortError: if the acceptor reports ``FAILURE``
    :raises WaiterTimeoutError: if the resource did not reach the expected state in time
    """
    delay = config.HOTSWAP_WAITER_DELAY if delay is None else delay
    max_attempts = config.HOTSWAP_WAITER_MAX_ATTEMPTS if max_attempts is None else max_attempts
    observed_responses = Counter()

    for attempt in range(max_attempts):
        response = describe()
        state, observed = acceptor(response)
        observed_responses[observed] += 1

        if state == WaiterState.SUCCESS:
            return response
        if state == WaiterState.FAILURE:
            raise WaiterAbortError(
                WaiterResult(
                    state=WaiterState.FAILURE,
                    reason=observed,
                    observed_responses=dict(observed_responses),
                )
            )

        LOG.debug("Waiting for resource, attempt %s/%s: %s", attempt + 1, max_attempts, observed)
        if attempt < max_attempts - 1:
            time.sleep(delay)

    raise WaiterTimeoutError(
        WaiterResult(
            state=WaiterState.TIMEOUT,
            reason=f"Waiter has timed out after {max_attempts} attempt(s)",
            observed_responses=dict(observed_responses),
        )
    )
