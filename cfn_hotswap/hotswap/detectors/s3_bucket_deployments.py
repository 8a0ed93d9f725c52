import json
from typing import Any

from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.hotswap.common import (
    ChangeHotswapResult,
    HotswappableChange,
    HotswappableChangeCandidate,
    HotswapPropertyOverrides,
    report_non_hotswappable_resource,
)

CDK_BUCKET_DEPLOYMENT_TYPE = "Custom::CDKBucketDeployment"
IAM_POLICY = "AWS::IAM::Policy"
LAMBDA_FUNCTION = "AWS::Lambda::Function"

# the handler only reads the resource properties, the fields it needs to respond to CloudFormation are dummies
REQUIRED_BY_CFN = "required-to-be-present-by-cfn"


def is_hotswappable_s3_bucket_deployment_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    if change.resource_type != CDK_BUCKET_DEPLOYMENT_TYPE:
        return []

    properties = dict(change.new_value.get("Properties") or {})
    service_token = properties.pop("ServiceToken", None)
    custom_resource_properties = evaluate_cfn_template.evaluate_cfn_expression(properties)
    # the service token is the ARN of the handler function, which lambda accepts as name
    function_name = evaluate_cfn_template.evaluate_cfn_expression(service_token)

    def _apply(clients: ServiceLevelClientFactory) -> None:
        payload = {
            "RequestType": "Update",
            "ResponseURL": REQUIRED_BY_CFN,
            "PhysicalResourceId": REQUIRED_BY_CFN,
            "StackId": REQUIRED_BY_CFN,
            "RequestId": REQUIRED_BY_CFN,
            "LogicalResourceId": REQUIRED_BY_CFN,
            "ResourceProperties": stringify_object(custom_resource_properties),
        }
        clients.lambda_.invoke(FunctionName=function_name, Payload=json.dumps(payload))

    return [
        HotswappableChange(
            resource_type=change.resource_type,
            props_changed=["*"],
            service="custom-s3-deployment",
            resource_names=[
                f"Contents of S3 Bucket '{custom_resource_properties.get('DestinationBucketName')}'"
            ],
            apply=_apply,
        )
    ]


def is_hotswappable_iam_policy_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    # policies of bucket deployment handlers reference the assets, they change with every asset change
    if skip_change_for_s3_deploy_custom_resource_policy(logical_id, change, evaluate_cfn_template):
        return []
    return report_non_hotswappable_resource(
        change, "This resource type is not supported for hotswap deployments"
    )


def skip_change_for_s3_deploy_custom_resource_policy(
    iam_policy_logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
) -> bool:
    """
    Returns whether the changed policy is only attached to roles which are only used by the handlers of bucket
    deployments.
    """
    if change.resource_type != IAM_POLICY:
        return False
    role_refs = (change.new_value.get("Properties") or {}).get("Roles")
    if not role_refs:
        return False

    for role_ref in role_refs:
        role_name = evaluate_cfn_template.evaluate_cfn_expression(role_ref)
        role_logical_id = evaluate_cfn_template.find_logical_id_for_physical_name(role_name)
        if not role_logical_id:
            return False

        for resource in evaluate_cfn_template.find_references_to(role_logical_id):
            if resource["LogicalId"] == iam_policy_logical_id:
                continue
            if resource.get("Type") != LAMBDA_FUNCTION:
                return False
            for custom_resource in evaluate_cfn_template.find_references_to(resource["LogicalId"]):
                if custom_resource.get("Type") != CDK_BUCKET_DEPLOYMENT_TYPE:
                    return False

    return True


def stringify_object(value: Any) -> Any:
    """Converts all scalar values to strings, as CloudFormation passes them to custom resources."""
    if value is None:
        return None
    if isinstance(value, dict):
        return {key: stringify_object(item) for key, item in value.items()}
    if isinstance(value, list):
        return [stringify_object(item) for item in value]
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
