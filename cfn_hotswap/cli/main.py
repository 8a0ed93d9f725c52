import logging
import os
import sys

import click
from botocore.exceptions import BotoCoreError, ClientError

from cfn_hotswap import __version__, config
from cfn_hotswap.aws.connect import connect_to
from cfn_hotswap.engine.template import load_template_file
from cfn_hotswap.engine.types import StackArtifact
from cfn_hotswap.exceptions import HotswapError
from cfn_hotswap.hotswap.common import (
    EcsHotswapProperties,
    HotswapMode,
    HotswapPropertyOverrides,
)
from cfn_hotswap.hotswap.deployment import CloudFormationStack, try_hotswap_deployment

from .exceptions import CLIError

LOG = logging.getLogger(__name__)


def _setup_cli_debug():
    from cfn_hotswap.logging.setup import setup_logging_for_cli

    config.DEBUG = True
    os.environ["DEBUG"] = "1"

    setup_logging_for_cli(logging.DEBUG)


def _parse_parameters(parameters: tuple[str, ...]) -> dict[str, str]:
    result = {}
    for parameter in parameters:
        key, separator, value = parameter.partition("=")
        if not separator or not key:
            raise CLIError(f"Invalid parameter '{parameter}', expected KEY=VALUE")
        result[key] = value
    return result


@click.group(name="cfn-hotswap", help="Deploy changes of CloudFormation stacks without CloudFormation")
@click.version_option(version=__version__, message="%(version)s")
@click.option("--debug", is_flag=True, help="Enable CLI debugging mode")
def cli(debug):
    if debug:
        _setup_cli_debug()
    else:
        from cfn_hotswap.logging.setup import setup_logging_from_config

        setup_logging_from_config()


@cli.command(name="deploy", help="Hotswap the changes between the deployed stack and a template")
@click.argument("stack_name")
@click.option(
    "--template",
    "template_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Path of the generated template (JSON or YAML)",
)
@click.option(
    "--assembly-dir",
    type=click.Path(exists=True, file_okay=False),
    help="Directory the templates of nested stacks are resolved against (default: directory of the template)",
)
@click.option(
    "--hotswap-only",
    is_flag=True,
    default=False,
    help="Hotswap the hotswappable changes and ignore all others",
)
@click.option(
    "-p", "--parameter", "parameters", multiple=True, help="Template parameter in the form KEY=VALUE"
)
@click.option("--ecs-minimum-healthy-percent", type=int, help="Lower limit of running ECS tasks")
@click.option("--ecs-maximum-healthy-percent", type=int, help="Upper limit of running ECS tasks")
@click.option("--region", help="AWS region of the stack")
@click.option("--endpoint-url", help="Endpoint URL of all AWS clients, e.g. of an emulator")
def cmd_deploy(
    stack_name: str,
    template_file: str,
    assembly_dir: str,
    hotswap_only: bool,
    parameters: tuple[str, ...],
    ecs_minimum_healthy_percent: int,
    ecs_maximum_healthy_percent: int,
    region: str,
    endpoint_url: str,
):
    try:
        ecs_properties = EcsHotswapProperties(
            minimum_healthy_percent=ecs_minimum_healthy_percent
            if ecs_minimum_healthy_percent is not None
            else config.HOTSWAP_ECS_MINIMUM_HEALTHY_PERCENT,
            maximum_healthy_percent=ecs_maximum_healthy_percent
            if ecs_maximum_healthy_percent is not None
            else config.HOTSWAP_ECS_MAXIMUM_HEALTHY_PERCENT,
        )
    except ValueError as e:
        raise CLIError(str(e)) from e

    stack_artifact = StackArtifact(
        stack_name=stack_name,
        template=load_template_file(template_file),
        assembly_dir=assembly_dir or os.path.dirname(os.path.abspath(template_file)),
    )
    hotswap_mode = HotswapMode.HOTSWAP_ONLY if hotswap_only else HotswapMode.FALL_BACK
    clients = connect_to(region_name=region, endpoint_url=endpoint_url)

    try:
        result = try_hotswap_deployment(
            clients,
            _parse_parameters(parameters),
            CloudFormationStack.lookup(clients, stack_name),
            stack_artifact,
            hotswap_mode,
            HotswapPropertyOverrides(ecs_hotswap_properties=ecs_properties),
        )
    except (HotswapError, ClientError, BotoCoreError) as e:
        if config.DEBUG:
            LOG.exception("Hotswap deployment of %s failed", stack_name)
        raise CLIError(f"Hotswap deployment of {stack_name} failed: {e}") from e

    if result is None:
        click.echo(
            f"Could not perform a hotswap deployment of {stack_name}, as it contains non-hotswappable changes. "
            f"Deploy the stack with CloudFormation."
        )
        sys.exit(1)

    if result.no_op:
        click.echo(f"{stack_name} (no changes)")
    else:
        click.echo(f"✨ hotswap deployment of {stack_name} complete")
    for key, value in result.outputs.items():
        click.echo(f"{stack_name}.{key} = {value}")


def main():
    cli()


if __name__ == "__main__":
    main()
