import threading

import pytest
from botocore.exceptions import WaiterError as BotocoreWaiterError

from cfn_hotswap.exceptions import HotswapWaiterError
from cfn_hotswap.hotswap.applier import apply_all_hotswappable_changes, apply_hotswappable_change
from cfn_hotswap.hotswap.common import HotswappableChange
from cfn_hotswap.utils.waiter import WaiterResult, WaiterState, WaiterTimeoutError


def _change(apply, service: str = "lambda", name: str = "Lambda Function 'my-function'"):
    return HotswappableChange(
        resource_type="AWS::Lambda::Function",
        props_changed=["Code"],
        service=service,
        resource_names=[name],
        apply=apply,
    )


class TestApplyAllHotswappableChanges:
    def test_no_changes(self, clients):
        apply_all_hotswappable_changes(clients, [])

    def test_concurrency_is_bounded(self, clients):
        lock = threading.Lock()
        in_flight = 0
        max_in_flight = 0
        completed = []

        def _apply(index):
            def _inner(_clients):
                nonlocal in_flight, max_in_flight
                with lock:
                    in_flight += 1
                    max_in_flight = max(max_in_flight, in_flight)
                threading.Event().wait(0.05)
                with lock:
                    in_flight -= 1
                    completed.append(index)

            return _inner

        apply_all_hotswappable_changes(clients, [_change(_apply(i)) for i in range(15)])

        assert sorted(completed) == list(range(15))
        assert max_in_flight <= 10

    def test_first_failure_fails_the_batch(self, clients):
        def _fail(_clients):
            raise ValueError("update failed")

        with pytest.raises(ValueError, match="update failed"):
            apply_all_hotswappable_changes(clients, [_change(lambda c: None), _change(_fail)])

    def test_pending_changes_are_cancelled_after_failure(self, clients):
        started = []
        release = threading.Event()

        def _blocking(index):
            def _inner(_clients):
                started.append(index)
                release.wait(timeout=5)

            return _inner

        def _fail(_clients):
            raise ValueError("update failed")

        changes = [_change(_fail)] + [_change(_blocking(i)) for i in range(20)]
        try:
            with pytest.raises(ValueError):
                apply_all_hotswappable_changes(clients, changes)
        finally:
            release.set()

        # at most the changes that were picked up by the workers before the failure have been started
        assert len(started) < 20

    def test_each_operation_gets_its_own_user_agent(self, clients, client_factory):
        def _call(service):
            def _inner(operation_clients):
                operation_clients.get_client(service).do_something()

            return _inner

        apply_all_hotswappable_changes(
            clients,
            [_change(_call("lambda"), service="lambda"), _change(_call("ecs"), service="ecs-service")],
        )

        assert set(client_factory.requested) == {
            ("lambda", "cdk-hotswap/success-lambda"),
            ("ecs", "cdk-hotswap/success-ecs-service"),
        }
        assert clients.user_agent_extra is None


class TestApplyHotswappableChange:
    def test_waiter_timeout_is_translated(self, clients):
        result = WaiterResult(
            state=WaiterState.TIMEOUT,
            reason="Waiter has timed out after 3 attempt(s)",
            observed_responses={"LastUpdateStatus: InProgress": 3},
        )
        original = WaiterTimeoutError(result)

        def _apply(_clients):
            raise original

        with pytest.raises(HotswapWaiterError) as e:
            apply_hotswappable_change(clients, _change(_apply))

        assert e.value.name == "TimeoutError"
        assert e.value.result == result
        assert e.value.__cause__ is original
        assert e.value.message == (
            "Resource is not in the expected state due to waiter status: TIMEOUT. "
            "Waiter has timed out after 3 attempt(s). Observed responses:\n"
            "  - LastUpdateStatus: InProgress (3)"
        )
        assert '"observedResponses"' not in str(e.value)

    def test_botocore_waiter_error_is_translated(self, clients):
        def _apply(_clients):
            raise BotocoreWaiterError(
                name="ServicesStable",
                reason="Max attempts exceeded",
                last_response={"services": []},
            )

        with pytest.raises(HotswapWaiterError) as e:
            apply_hotswappable_change(clients, _change(_apply))

        assert e.value.name == "TimeoutError"
        assert e.value.message == (
            "Resource is not in the expected state due to waiter status: TIMEOUT. Max attempts exceeded."
        )

    def test_other_errors_are_raised_unchanged(self, clients):
        error = RuntimeError("access denied")

        def _apply(_clients):
            raise error

        with pytest.raises(RuntimeError) as e:
            apply_hotswappable_change(clients, _change(_apply))

        assert e.value is error

    def test_progress_is_logged(self, clients, caplog):
        with caplog.at_level("INFO"):
            apply_hotswappable_change(clients, _change(lambda c: None))

        assert "hotswapping Lambda Function 'my-function'" in caplog.text
        assert "Lambda Function 'my-function' hotswapped!" in caplog.text
