import logging
from typing import Optional

from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.exceptions import HotswapError
from cfn_hotswap.hotswap.common import (
    ChangeHotswapResult,
    HotswappableChange,
    HotswappableChangeCandidate,
    HotswapPropertyOverrides,
    classify_changes,
    lower_case_first_character,
    report_non_hotswappable_change,
    transform_object_keys,
)
from cfn_hotswap.utils.sync import retry_on_error_code
from cfn_hotswap.utils.waiter import WaiterState, wait_until_state

LOG = logging.getLogger(__name__)

APPSYNC_RESOLVER = "AWS::AppSync::Resolver"
APPSYNC_FUNCTION = "AWS::AppSync::FunctionConfiguration"
APPSYNC_SCHEMA = "AWS::AppSync::GraphQLSchema"
APPSYNC_API_KEY = "AWS::AppSync::ApiKey"

MAPPING_TEMPLATE_PROPERTIES = [
    "RequestMappingTemplate",
    "RequestMappingTemplateS3Location",
    "ResponseMappingTemplate",
    "ResponseMappingTemplateS3Location",
    "Code",
    "CodeS3Location",
]

HOTSWAPPABLE_PROPERTIES = {
    APPSYNC_RESOLVER: MAPPING_TEMPLATE_PROPERTIES,
    APPSYNC_FUNCTION: MAPPING_TEMPLATE_PROPERTIES,
    APPSYNC_SCHEMA: ["Definition", "DefinitionS3Location"],
    APPSYNC_API_KEY: ["Expires"],
}

# parameters accepted by the update operations, everything else in the template is dropped
UPDATE_RESOLVER_PARAMETERS = (
    "apiId",
    "typeName",
    "fieldName",
    "dataSourceName",
    "requestMappingTemplate",
    "responseMappingTemplate",
    "kind",
    "pipelineConfig",
    "syncConfig",
    "cachingConfig",
    "maxBatchSize",
    "runtime",
    "code",
    "metricsConfig",
)
UPDATE_FUNCTION_PARAMETERS = (
    "apiId",
    "name",
    "description",
    "functionId",
    "dataSourceName",
    "requestMappingTemplate",
    "responseMappingTemplate",
    "functionVersion",
    "syncConfig",
    "maxBatchSize",
    "runtime",
    "code",
)
UPDATE_API_KEY_PARAMETERS = ("apiId", "id", "description", "expires")


def is_hotswappable_appsync_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    resource_type = change.resource_type
    if resource_type not in HOTSWAPPABLE_PROPERTIES:
        return []

    new_properties = change.new_value.get("Properties") or {}
    ret: ChangeHotswapResult = []
    if resource_type == APPSYNC_RESOLVER and new_properties.get("Kind") == "PIPELINE":
        report_non_hotswappable_change(
            ret,
            change,
            None,
            "Pipeline resolvers cannot be hotswapped since they reference the FunctionId of the underlying "
            "functions, which cannot be resolved",
        )
        return ret

    classified_changes = classify_changes(change, HOTSWAPPABLE_PROPERTIES[resource_type])
    classified_changes.report_non_hotswappable_property_changes(ret)

    names_of_hotswappable_changes = classified_changes.names_of_hotswappable_props
    if not names_of_hotswappable_changes:
        return ret

    physical_name = evaluate_cfn_template.establish_resource_physical_name(
        logical_id, new_properties.get("Name") if resource_type == APPSYNC_FUNCTION else None
    )

    def _apply(clients: ServiceLevelClientFactory) -> None:
        if not physical_name:
            return

        sdk_properties = {**(change.old_value.get("Properties") or {})}
        for name in HOTSWAPPABLE_PROPERTIES[resource_type]:
            sdk_properties[name] = new_properties.get(name)
        if resource_type == APPSYNC_API_KEY:
            sdk_properties["Id"] = new_properties.get("ApiKeyId")
        evaluated = evaluate_cfn_template.evaluate_cfn_expression(sdk_properties)
        request = transform_object_keys(evaluated, lower_case_first_character)

        # templates and code stored as assets are inlined
        for key in ("requestMappingTemplate", "responseMappingTemplate", "code", "definition"):
            location = request.pop(f"{key}S3Location", None)
            if location:
                request[key] = fetch_file_from_s3(clients, location)

        appsync = clients.appsync
        if resource_type == APPSYNC_RESOLVER:
            appsync.update_resolver(**_select(request, UPDATE_RESOLVER_PARAMETERS))
        elif resource_type == APPSYNC_FUNCTION:
            request["functionId"] = find_function_id(clients, request["apiId"], request.get("name"))
            # updates of functions of the same API are rejected while another one is in progress
            retry_on_error_code(
                appsync.update_function,
                "ConcurrentModificationException",
                **_select(request, UPDATE_FUNCTION_PARAMETERS),
            )
        elif resource_type == APPSYNC_SCHEMA:
            update_schema(clients, request["apiId"], request.get("definition"))
        else:
            if not request.get("id"):
                # arn:aws:appsync:<region>:<account>:apis/<api id>/apikeys/<key id>
                arn_parts = physical_name.split("/")
                if len(arn_parts) == 4:
                    request["id"] = arn_parts[3]
            appsync.update_api_key(**_select(request, UPDATE_API_KEY_PARAMETERS))

    ret.append(
        HotswappableChange(
            resource_type=resource_type,
            props_changed=names_of_hotswappable_changes,
            service="appsync",
            resource_names=[f"{resource_type} '{physical_name}'"],
            apply=_apply,
        )
    )
    return ret


def _select(request: dict, parameters: tuple) -> dict:
    return {key: request[key] for key in parameters if request.get(key) is not None}


def fetch_file_from_s3(clients: ServiceLevelClientFactory, s3_url: str) -> str:
    """Returns the content of the object at an ``s3://<bucket>/<key>`` URL."""
    parts = s3_url.split("/")
    bucket, key = parts[2], "/".join(parts[3:])
    response = clients.s3.get_object(Bucket=bucket, Key=key)
    return response["Body"].read().decode("utf-8")


def find_function_id(clients: ServiceLevelClientFactory, api_id: str, name: Optional[str]) -> str:
    paginator = clients.appsync.get_paginator("list_functions")
    for page in paginator.paginate(apiId=api_id):
        for function in page.get("functions", []):
            if function.get("name") == name:
                return function["functionId"]
    raise HotswapError(f"AppSync function '{name}' of API '{api_id}' was not found")


def update_schema(clients: ServiceLevelClientFactory, api_id: str, definition: str) -> None:
    appsync = clients.appsync
    response = appsync.start_schema_creation(apiId=api_id, definition=definition.encode("utf-8"))
    if response.get("status") == "SUCCESS":
        return

    def _acceptor(status: dict) -> tuple[WaiterState, str]:
        state = status.get("status")
        if state in ("SUCCESS", "ACTIVE"):
            return WaiterState.SUCCESS, f"status: {state}"
        if state == "FAILED":
            return WaiterState.FAILURE, status.get("details") or "Schema creation has failed."
        return WaiterState.RETRY, f"status: {state}"

    wait_until_state(lambda: appsync.get_schema_creation_status(apiId=api_id), _acceptor, delay=1)
