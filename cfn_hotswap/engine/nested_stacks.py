"""Loading of the deployed and generated templates of a stack and all of its nested stacks."""
import copy
import logging
import os
from typing import Optional

from botocore.exceptions import ClientError

from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.constants import ASSET_PATH_METADATA_KEY, NESTED_STACK_RESOURCE_TYPE
from cfn_hotswap.engine.evaluate import LazyListStackResources
from cfn_hotswap.engine.template import load_template_file, parse_template
from cfn_hotswap.engine.types import (
    NestedStackTemplates,
    RootTemplateWithNestedStacks,
    StackArtifact,
    Template,
)

LOG = logging.getLogger(__name__)


def is_cdk_managed_nested_stack(resource: dict) -> bool:
    return resource.get("Type") == NESTED_STACK_RESOURCE_TYPE and bool(
        (resource.get("Metadata") or {}).get(ASSET_PATH_METADATA_KEY)
    )


def load_current_template(stack_name: str, clients: ServiceLevelClientFactory) -> Template:
    """
    Returns the template of the deployed stack, or an empty template if the stack does not exist.
    """
    try:
        response = clients.cloudformation.get_template(StackName=stack_name, TemplateStage="Original")
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "ValidationError" and "does not exist" in str(e):
            LOG.debug("Stack %s does not exist, using an empty template", stack_name)
            return {}
        raise
    return parse_template(response.get("TemplateBody"))


def load_current_template_with_nested_stacks(
    stack_artifact: StackArtifact, clients: ServiceLevelClientFactory
) -> RootTemplateWithNestedStacks:
    deployed_template = load_current_template(stack_artifact.stack_name, clients)
    generated_template = copy.deepcopy(stack_artifact.template)
    nested_stacks = _load_nested_stacks(
        stack_artifact,
        clients,
        generated_template=generated_template,
        deployed_template=deployed_template,
        deployed_stack_name=stack_artifact.stack_name if deployed_template else None,
    )
    return RootTemplateWithNestedStacks(
        deployed_root_template=deployed_template,
        generated_root_template=generated_template,
        nested_stacks=nested_stacks,
    )


def _load_nested_stacks(
    stack_artifact: StackArtifact,
    clients: ServiceLevelClientFactory,
    generated_template: Template,
    deployed_template: Template,
    deployed_stack_name: Optional[str],
) -> dict[str, NestedStackTemplates]:
    list_stack_resources = (
        LazyListStackResources(clients, deployed_stack_name) if deployed_stack_name else None
    )
    nested_stacks = {}
    for logical_id, generated_resource in (generated_template.get("Resources") or {}).items():
        if not is_cdk_managed_nested_stack(generated_resource):
            continue

        asset_path = generated_resource["Metadata"][ASSET_PATH_METADATA_KEY]
        nested_generated_template = _load_generated_nested_template(stack_artifact, asset_path)
        physical_name = _find_nested_stack_physical_name(logical_id, list_stack_resources)
        nested_deployed_template = (
            load_current_template(physical_name, clients) if physical_name else {}
        )

        # make the content of the nested stacks part of the parent templates
        generated_resource.setdefault("Properties", {})["NestedTemplate"] = nested_generated_template
        deployed_resources = deployed_template.setdefault("Resources", {})
        deployed_resource = deployed_resources.setdefault(logical_id, {})
        deployed_resource.setdefault("Type", NESTED_STACK_RESOURCE_TYPE)
        deployed_resource.setdefault("Properties", {})["NestedTemplate"] = nested_deployed_template

        nested_stacks[logical_id] = NestedStackTemplates(
            physical_name=physical_name,
            deployed_template=nested_deployed_template,
            generated_template=nested_generated_template,
            nested_stack_templates=_load_nested_stacks(
                stack_artifact,
                clients,
                generated_template=nested_generated_template,
                deployed_template=nested_deployed_template,
                deployed_stack_name=physical_name,
            ),
        )
    return nested_stacks


def _load_generated_nested_template(stack_artifact: StackArtifact, asset_path: str) -> Template:
    assembly_dir = stack_artifact.assembly_dir or os.getcwd()
    return load_template_file(os.path.join(assembly_dir, asset_path))


def _find_nested_stack_physical_name(
    logical_id: str, list_stack_resources: Optional[LazyListStackResources]
) -> Optional[str]:
    if not list_stack_resources:
        return None
    for resource in list_stack_resources.list_stack_resources():
        if resource.get("LogicalResourceId") == logical_id and resource.get("PhysicalResourceId"):
            # arn:aws:cloudformation:<region>:<account>:stack/<name>/<uuid>
            physical_id = resource["PhysicalResourceId"]
            parts = physical_id.split("/")
            return parts[1] if len(parts) > 2 else physical_id
    return None
