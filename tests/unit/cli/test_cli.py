from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from cfn_hotswap.cli import main
from cfn_hotswap.exceptions import HotswapWaiterError
from cfn_hotswap.hotswap.common import HotswapMode
from cfn_hotswap.hotswap.deployment import DeployStackResult


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.setattr("cfn_hotswap.logging.setup.setup_logging_from_config", lambda: None)
    monkeypatch.setattr("cfn_hotswap.logging.setup.setup_logging_for_cli", lambda level: None)


@pytest.fixture
def template_file(tmp_path):
    path = tmp_path / "stack.template.json"
    path.write_text('{"Resources": {}}')
    return str(path)


@pytest.fixture
def deploy(monkeypatch):
    try_hotswap_deployment = MagicMock()
    monkeypatch.setattr(main, "try_hotswap_deployment", try_hotswap_deployment)
    monkeypatch.setattr(main, "connect_to", MagicMock())
    monkeypatch.setattr(main.CloudFormationStack, "lookup", MagicMock())
    return try_hotswap_deployment


def test_help(runner):
    result = runner.invoke(main.cli, ["--help"])

    assert result.exit_code == 0
    assert "Usage: cfn-hotswap" in result.output


def test_hotswapped(runner, template_file, deploy):
    deploy.return_value = DeployStackResult(
        applied=True, no_op=False, outputs={"Url": "https://example.com"}
    )

    result = runner.invoke(
        main.cli,
        ["deploy", "my-stack", "--template", template_file, "-p", "Stage=prod", "--hotswap-only"],
    )

    assert result.exit_code == 0, result.output
    assert "hotswap deployment of my-stack complete" in result.output
    assert "my-stack.Url = https://example.com" in result.output
    args = deploy.call_args.args
    assert args[1] == {"Stage": "prod"}
    assert args[3].stack_name == "my-stack"
    assert args[4] == HotswapMode.HOTSWAP_ONLY


def test_no_changes(runner, template_file, deploy):
    deploy.return_value = DeployStackResult(applied=True, no_op=True)

    result = runner.invoke(main.cli, ["deploy", "my-stack", "--template", template_file])

    assert result.exit_code == 0
    assert "my-stack (no changes)" in result.output
    assert deploy.call_args.args[4] == HotswapMode.FALL_BACK


def test_fall_back_needed(runner, template_file, deploy):
    deploy.return_value = None

    result = runner.invoke(main.cli, ["deploy", "my-stack", "--template", template_file])

    assert result.exit_code == 1
    assert "Deploy the stack with CloudFormation" in result.output


def test_ecs_overrides(runner, template_file, deploy):
    deploy.return_value = DeployStackResult(applied=True, no_op=True)

    runner.invoke(
        main.cli,
        ["deploy", "my-stack", "--template", template_file, "--ecs-minimum-healthy-percent", "50"],
    )

    ecs_properties = deploy.call_args.args[5].ecs_hotswap_properties
    assert ecs_properties.minimum_healthy_percent == 50
    assert ecs_properties.maximum_healthy_percent == 200


def test_invalid_ecs_overrides(runner, template_file, deploy):
    result = runner.invoke(
        main.cli,
        ["deploy", "my-stack", "--template", template_file, "--ecs-minimum-healthy-percent", "-1"],
    )

    assert result.exit_code == 1
    assert "Error: minimum_healthy_percent can't be a negative number" in result.output
    deploy.assert_not_called()


def test_invalid_parameter(runner, template_file, deploy):
    result = runner.invoke(main.cli, ["deploy", "my-stack", "--template", template_file, "-p", "Stage"])

    assert result.exit_code == 1
    assert "Invalid parameter 'Stage'" in result.output


def test_hotswap_failure(runner, template_file, deploy):
    deploy.side_effect = HotswapWaiterError(
        "Resource is not in the expected state due to waiter status: TIMEOUT", name="TimeoutError"
    )

    result = runner.invoke(main.cli, ["deploy", "my-stack", "--template", template_file])

    assert result.exit_code == 1
    assert "Hotswap deployment of my-stack failed" in result.output
    assert "waiter status: TIMEOUT" in result.output
