import io
import logging
import zipfile
from typing import Any, Optional

from cfn_hotswap import config
from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.engine.types import PropertyDifference
from cfn_hotswap.exceptions import HotswapError
from cfn_hotswap.hotswap.common import (
    ChangeHotswapResult,
    HotswappableChange,
    HotswappableChangeCandidate,
    HotswapPropertyOverrides,
    classify_changes,
)

LOG = logging.getLogger(__name__)

LAMBDA_FUNCTION = "AWS::Lambda::Function"
LAMBDA_VERSION = "AWS::Lambda::Version"
LAMBDA_ALIAS = "AWS::Lambda::Alias"


def is_hotswappable_lambda_function_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    resource_type = change.resource_type
    # a new version is published when the code of the function is updated
    if resource_type == LAMBDA_VERSION:
        return [
            HotswappableChange(
                resource_type=LAMBDA_VERSION,
                props_changed=[],
                service="lambda",
                resource_names=[],
                apply=lambda clients: None,
            )
        ]

    if resource_type == LAMBDA_ALIAS:
        return classify_alias_changes(change)

    if resource_type != LAMBDA_FUNCTION:
        return []

    ret: ChangeHotswapResult = []
    classified_changes = classify_changes(change, ["Code", "Environment", "Description"])
    classified_changes.report_non_hotswappable_property_changes(ret)

    names_of_hotswappable_changes = classified_changes.names_of_hotswappable_props
    if not names_of_hotswappable_changes:
        return ret

    new_properties = change.new_value.get("Properties") or {}
    function_name = evaluate_cfn_template.establish_resource_physical_name(
        logical_id, new_properties.get("FunctionName")
    )
    versions, alias_names = versions_and_aliases(logical_id, evaluate_cfn_template)
    resource_names = [f"Lambda Function '{function_name}'"]
    if versions:
        resource_names.append(f"Lambda Version for Function '{function_name}'")
    resource_names.extend(f"Lambda Alias '{alias}' for Function '{function_name}'" for alias in alias_names)

    def _apply(clients: ServiceLevelClientFactory) -> None:
        if not function_name:
            return
        code, configuration = evaluate_lambda_function_props(
            classified_changes.hotswappable_props, new_properties.get("Runtime"), evaluate_cfn_template
        )
        if code is None and configuration is None:
            return

        lambda_client = clients.lambda_
        if code is not None:
            response = lambda_client.update_function_code(FunctionName=function_name, **code)
            wait_for_lambda_update_to_finish(response, clients, function_name)

        if configuration is not None:
            response = lambda_client.update_function_configuration(
                FunctionName=function_name, **configuration
            )
            wait_for_lambda_update_to_finish(response, clients, function_name)

        # only a changed function is worth a new version
        if versions:
            version = lambda_client.publish_version(FunctionName=function_name)["Version"]
            for alias in alias_names:
                lambda_client.update_alias(
                    FunctionName=function_name, Name=alias, FunctionVersion=version
                )

    ret.append(
        HotswappableChange(
            resource_type=resource_type,
            props_changed=names_of_hotswappable_changes,
            service="lambda",
            resource_names=resource_names,
            apply=_apply,
        )
    )
    return ret


def classify_alias_changes(change: HotswappableChangeCandidate) -> ChangeHotswapResult:
    ret: ChangeHotswapResult = []
    classified_changes = classify_changes(change, ["FunctionVersion"])
    classified_changes.report_non_hotswappable_property_changes(ret)

    # the alias is pointed to the new version when the function is hotswapped
    if classified_changes.names_of_hotswappable_props:
        ret.append(
            HotswappableChange(
                resource_type=change.resource_type,
                props_changed=[],
                service="lambda",
                resource_names=[],
                apply=lambda clients: None,
            )
        )
    return ret


def evaluate_lambda_function_props(
    hotswappable_props: dict[str, PropertyDifference],
    runtime: Optional[str],
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
) -> tuple[Optional[dict], Optional[dict]]:
    """
    Returns the parameters of ``update_function_code`` and ``update_function_configuration`` for the changed
    properties, each of them None if the call is not needed.
    """
    code = None
    configuration = {}
    for name, update in hotswappable_props.items():
        if name == "Code":
            code = {}
            for code_property, value in (update.new_value or {}).items():
                evaluated = evaluate_cfn_template.evaluate_cfn_expression(value)
                if code_property in ("S3Bucket", "S3Key", "S3ObjectVersion", "ImageUri"):
                    code[code_property] = evaluated
                elif code_property == "ZipFile":
                    code["ZipFile"] = zip_string(function_file_name(runtime), evaluated)
        elif name == "Description":
            configuration["Description"] = evaluate_cfn_template.evaluate_cfn_expression(
                update.new_value
            )
        elif name == "Environment":
            environment = evaluate_cfn_template.evaluate_cfn_expression(update.new_value) or {}
            variables = environment.get("Variables") or {}
            configuration["Environment"] = {
                "Variables": {key: str(value) for key, value in variables.items()}
            }
        else:
            raise HotswapError(f"Property '{name}' of a Lambda function cannot be hotswapped")

    return code, configuration or None


def function_file_name(runtime: Optional[str]) -> str:
    runtime = runtime or ""
    if runtime.startswith("node"):
        return "index.js"
    if runtime.startswith("python"):
        return "index.py"
    raise HotswapError(
        f"runtime {runtime} is unsupported, only node.js and python runtimes are currently supported."
    )


def zip_string(file_name: str, content: str) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        info = zipfile.ZipInfo(file_name, date_time=(1980, 1, 1, 0, 0, 0))
        info.external_attr = 0o755 << 16
        archive.writestr(info, content)
    return buffer.getvalue()


def versions_and_aliases(
    logical_id: str, evaluate_cfn_template: EvaluateCloudFormationTemplate
) -> tuple[list[dict], list[Any]]:
    versions = [
        resource
        for resource in evaluate_cfn_template.find_references_to(logical_id)
        if resource.get("Type") == LAMBDA_VERSION
    ]
    aliases = [
        resource
        for version in versions
        for resource in evaluate_cfn_template.find_references_to(version["LogicalId"])
        if resource.get("Type") == LAMBDA_ALIAS
    ]
    alias_names = [
        evaluate_cfn_template.evaluate_cfn_expression((alias.get("Properties") or {}).get("Name"))
        for alias in aliases
    ]
    return versions, alias_names


def wait_for_lambda_update_to_finish(
    current_configuration: dict, clients: ServiceLevelClientFactory, function_name: str
) -> None:
    # functions in a VPC or deployed as image take considerably longer to update
    in_vpc_or_image = (current_configuration.get("VpcConfig") or {}).get(
        "VpcId"
    ) or current_configuration.get("PackageType") == "Image"
    delay = 5 if in_vpc_or_image else 1

    # LastUpdateStatus is polled until it is Successful, Failed aborts the waiter
    clients.lambda_.get_waiter("function_updated_v2").wait(
        FunctionName=function_name,
        WaiterConfig={"Delay": delay, "MaxAttempts": config.HOTSWAP_WAITER_MAX_ATTEMPTS},
    )
