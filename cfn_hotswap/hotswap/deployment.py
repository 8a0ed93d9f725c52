"""
Entry point of the hotswap engine.

A hotswap deployment short-circuits a CloudFormation deployment: instead of updating the stack, the changed
resources are updated directly through their service APIs. This is only possible if every change of the stack can
be hotswapped (or, with ``HotswapMode.HOTSWAP_ONLY``, if the changes that cannot be hotswapped may be ignored).
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from botocore.exceptions import ClientError

from cfn_hotswap.aws.connect import (
    ResolvedEnvironment,
    ServiceLevelClientFactory,
    resolve_environment,
)
from cfn_hotswap.engine.diff import full_diff
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.engine.nested_stacks import load_current_template_with_nested_stacks
from cfn_hotswap.engine.types import StackArtifact
from cfn_hotswap.hotswap.applier import apply_all_hotswappable_changes
from cfn_hotswap.hotswap.classifier import classify_resource_changes
from cfn_hotswap.hotswap.common import HotswapMode, HotswapPropertyOverrides
from cfn_hotswap.hotswap.reporting import log_non_hotswappable_changes

LOG = logging.getLogger(__name__)


@dataclass
class DeployStackResult:
    applied: bool
    no_op: bool
    outputs: dict[str, str] = field(default_factory=dict)
    stack_arn: Optional[str] = None


class CloudFormationStack:
    """The deployed state of a stack, as returned by ``describe_stacks``."""

    def __init__(self, stack_name: str, stack: Optional[dict] = None):
        self.stack_name = stack_name
        self._stack = stack

    @classmethod
    def lookup(cls, clients: ServiceLevelClientFactory, stack_name: str) -> "CloudFormationStack":
        try:
            response = clients.cloudformation.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ValidationError" and "does not exist" in str(e):
                return cls(stack_name)
            raise
        stacks = response.get("Stacks") or []
        return cls(stack_name, stacks[0] if stacks else None)

    @property
    def exists(self) -> bool:
        return self._stack is not None

    @property
    def stack_id(self) -> Optional[str]:
        return self._stack.get("StackId") if self._stack else None

    @property
    def stack_status(self) -> Optional[str]:
        return self._stack.get("StackStatus") if self._stack else None

    @property
    def outputs(self) -> dict[str, str]:
        if not self._stack:
            return {}
        return {
            output["OutputKey"]: output.get("OutputValue")
            for output in self._stack.get("Outputs") or []
        }


def try_hotswap_deployment(
    clients: ServiceLevelClientFactory,
    asset_params: Optional[dict[str, str]],
    cloudformation_stack: CloudFormationStack,
    stack_artifact: StackArtifact,
    hotswap_mode: HotswapMode,
    hotswap_property_overrides: Optional[HotswapPropertyOverrides] = None,
    environment: Optional[ResolvedEnvironment] = None,
) -> Optional[DeployStackResult]:
    """
    Tries to deploy the given stack by hotswapping its changes.

    :param clients: the clients of the deployment, the hotswap operations are applied through them
    :param asset_params: values of the template parameters
    :param cloudformation_stack: the deployed stack
    :param stack_artifact: the stack to deploy
    :param hotswap_mode: whether changes that cannot be hotswapped prevent the hotswap
    :param hotswap_property_overrides: passed through to the detectors
    :param environment: the environment of the stack, resolved from the clients if not given
    :return: the result of the deployment, or None if the stack has to be deployed by CloudFormation
    """
    hotswap_property_overrides = hotswap_property_overrides or HotswapPropertyOverrides()
    environment = environment or resolve_environment(clients)

    current_template = load_current_template_with_nested_stacks(stack_artifact, clients)
    evaluate_cfn_template = EvaluateCloudFormationTemplate(
        stack_name=stack_artifact.stack_name,
        template=current_template.generated_root_template,
        parameters=asset_params,
        account=environment.account,
        region=environment.region,
        partition=environment.partition,
        clients=clients,
    )

    stack_changes = full_diff(
        current_template.deployed_root_template, current_template.generated_root_template
    )
    classified_changes = classify_resource_changes(
        stack_changes,
        evaluate_cfn_template,
        current_template.nested_stacks,
        hotswap_property_overrides,
    )

    log_non_hotswappable_changes(classified_changes.non_hotswappable_changes, hotswap_mode)

    if hotswap_mode == HotswapMode.FALL_BACK and classified_changes.non_hotswappable_changes:
        LOG.debug(
            "Falling back to a full deployment of %s, %s change(s) cannot be hotswapped",
            stack_artifact.stack_name,
            len(classified_changes.non_hotswappable_changes),
        )
        return None

    apply_all_hotswappable_changes(clients, classified_changes.hotswappable_changes)

    return DeployStackResult(
        applied=True,
        no_op=not classified_changes.hotswappable_changes,
        outputs=cloudformation_stack.outputs,
        stack_arn=cloudformation_stack.stack_id,
    )
