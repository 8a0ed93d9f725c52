"""The resource types which can be hotswapped, and the detectors deciding how."""
from typing import Callable, Optional

from cfn_hotswap.constants import CDK_METADATA_RESOURCE_TYPE
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.hotswap.common import (
    ChangeHotswapResult,
    HotswappableChangeCandidate,
    HotswapPropertyOverrides,
)
from cfn_hotswap.hotswap.detectors.appsync_mapping_templates import is_hotswappable_appsync_change
from cfn_hotswap.hotswap.detectors.code_build_projects import (
    is_hotswappable_code_build_project_change,
)
from cfn_hotswap.hotswap.detectors.ecs_services import is_hotswappable_ecs_service_change
from cfn_hotswap.hotswap.detectors.lambda_functions import is_hotswappable_lambda_function_change
from cfn_hotswap.hotswap.detectors.s3_bucket_deployments import (
    is_hotswappable_iam_policy_change,
    is_hotswappable_s3_bucket_deployment_change,
)
from cfn_hotswap.hotswap.detectors.stepfunctions_state_machines import (
    is_hotswappable_state_machine_change,
)

HotswapDetector = Callable[
    [str, HotswappableChangeCandidate, EvaluateCloudFormationTemplate, HotswapPropertyOverrides],
    ChangeHotswapResult,
]


def _ignore_metadata_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    return []


RESOURCE_DETECTORS: dict[str, HotswapDetector] = {
    # Lambda
    "AWS::Lambda::Function": is_hotswappable_lambda_function_change,
    "AWS::Lambda::Version": is_hotswappable_lambda_function_change,
    "AWS::Lambda::Alias": is_hotswappable_lambda_function_change,
    # AppSync
    "AWS::AppSync::Resolver": is_hotswappable_appsync_change,
    "AWS::AppSync::FunctionConfiguration": is_hotswappable_appsync_change,
    "AWS::AppSync::GraphQLSchema": is_hotswappable_appsync_change,
    "AWS::AppSync::ApiKey": is_hotswappable_appsync_change,
    "AWS::ECS::TaskDefinition": is_hotswappable_ecs_service_change,
    "AWS::CodeBuild::Project": is_hotswappable_code_build_project_change,
    "AWS::StepFunctions::StateMachine": is_hotswappable_state_machine_change,
    "Custom::CDKBucketDeployment": is_hotswappable_s3_bucket_deployment_change,
    "AWS::IAM::Policy": is_hotswappable_iam_policy_change,
    CDK_METADATA_RESOURCE_TYPE: _ignore_metadata_change,
}


def get_detector(resource_type: str) -> Optional[HotswapDetector]:
    return RESOURCE_DETECTORS.get(resource_type)
