"""Translation of the errors of waiters into a readable diagnostic."""
from typing import Optional

from botocore.exceptions import WaiterError as BotocoreWaiterError

from cfn_hotswap.exceptions import HotswapWaiterError
from cfn_hotswap.utils.waiter import WaiterError, WaiterResult, WaiterState

WAITER_ERROR_NAMES = ("TimeoutError", "AbortError")


def _is_botocore_timeout(error: BotocoreWaiterError) -> bool:
    return (error.kwargs.get("reason") or "").startswith("Max attempts exceeded")


def waiter_error_name(error: Exception) -> Optional[str]:
    """Returns ``TimeoutError`` or ``AbortError`` if the error was raised by a waiter, None otherwise."""
    if isinstance(error, BotocoreWaiterError):
        return "TimeoutError" if _is_botocore_timeout(error) else "AbortError"
    name = getattr(error, "name", None)
    if name in WAITER_ERROR_NAMES:
        return name
    return None


def is_waiter_error(error: Exception) -> bool:
    return waiter_error_name(error) is not None


def parse_waiter_result(error: Exception) -> Optional[WaiterResult]:
    """Extracts the waiter result embedded in the given error, if there is one."""
    if isinstance(error, WaiterError):
        return error.result
    if isinstance(error, BotocoreWaiterError):
        last_response = error.last_response or {}
        observed = last_response.get("Error", {}).get("Message")
        return WaiterResult(
            state=WaiterState.TIMEOUT if _is_botocore_timeout(error) else WaiterState.FAILURE,
            reason=error.kwargs.get("reason"),
            observed_responses={observed: 1} if observed else None,
        )
    # errors of other waiters carry the result as JSON message
    try:
        return WaiterResult.from_json(str(error))
    except (ValueError, KeyError, TypeError):
        return None


def format_waiter_error_result(result: WaiterResult) -> str:
    main = f"Resource is not in the expected state due to waiter status: {result.state.value}"
    if result.reason:
        main = f"{main}. {result.reason}."
    if result.observed_responses:
        observed_responses = "\n".join(
            f"  - {message} ({count})" for message, count in result.observed_responses.items()
        )
        return f"{main} Observed responses:\n{observed_responses}"
    return main


def translate_waiter_error(error: Exception) -> HotswapWaiterError:
    """
    Returns the structured error for a waiter error, keeping the kind of the original error. The message is the
    formatted diagnostic if the error carries a waiter result, the original message otherwise.
    """
    result = parse_waiter_result(error)
    message = format_waiter_error_result(result) if result else str(error)
    return HotswapWaiterError(message, name=waiter_error_name(error), result=result)
