from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from cfn_hotswap.utils.sync import retry_on_error_code


def _error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "UpdateFunction")


def test_retries_on_error_code():
    function = MagicMock(side_effect=[_error("ConcurrentModificationException"), "done"])

    assert retry_on_error_code(function, "ConcurrentModificationException", sleep=0, name="x") == "done"
    function.assert_called_with(name="x")
    assert function.call_count == 2


def test_other_errors_are_raised_immediately():
    function = MagicMock(side_effect=_error("AccessDenied"))

    with pytest.raises(ClientError):
        retry_on_error_code(function, "ConcurrentModificationException", sleep=0)

    assert function.call_count == 1


def test_gives_up_after_retries():
    function = MagicMock(side_effect=_error("ConcurrentModificationException"))

    with pytest.raises(ClientError):
        retry_on_error_code(function, "ConcurrentModificationException", retries=2, sleep=0)

    assert function.call_count == 3
