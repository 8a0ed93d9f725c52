from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from cfn_hotswap.utils.waiter import WaiterResult


class HotswapError(Exception):
    """Base class for errors raised by the hotswap engine."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CfnEvaluationException(HotswapError):
    """Raised if a CloudFormation expression cannot be evaluated against the deployed stack."""


class HotswapWaiterError(HotswapError):
    """
    Raised if a hotswap operation changed a resource, but the resource did not reach the expected state.

    ``name`` is the kind of the original waiter error (``TimeoutError`` or ``AbortError``), the message is the
    formatted waiter diagnostic.
    """

    def __init__(self, message: str, name: str, result: Optional["WaiterResult"] = None):
        super().__init__(message)
        self.name = name
        self.result = result
