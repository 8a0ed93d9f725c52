import json

from cfn_hotswap.engine.types import PropertyDifference
from cfn_hotswap.hotswap.common import HotswappableChangeCandidate, HotswapPropertyOverrides
from cfn_hotswap.hotswap.detectors.s3_bucket_deployments import (
    REQUIRED_BY_CFN,
    is_hotswappable_iam_policy_change,
    is_hotswappable_s3_bucket_deployment_change,
    stringify_object,
)

HANDLER_ARN = "arn:aws:lambda:us-east-1:123456789012:function:deployment-handler"


def _candidate(logical_id: str, resource_type: str, old: dict, new: dict) -> HotswappableChangeCandidate:
    return HotswappableChangeCandidate(
        logical_id=logical_id,
        old_value={"Type": resource_type, "Properties": old},
        new_value={"Type": resource_type, "Properties": new},
        property_updates={
            name: PropertyDifference(old.get(name), new.get(name))
            for name in {**old, **new}
            if old.get(name) != new.get(name)
        },
    )


def _deployment(key: str) -> dict:
    return {
        "ServiceToken": {"Fn::GetAtt": ["Handler", "Arn"]},
        "SourceBucketNames": ["assets"],
        "SourceObjectKeys": [key],
        "DestinationBucketName": {"Ref": "Website"},
        "Prune": True,
    }


TEMPLATE = {
    "Resources": {
        "Website": {"Type": "AWS::S3::Bucket"},
        "HandlerRole": {"Type": "AWS::IAM::Role"},
        "Handler": {
            "Type": "AWS::Lambda::Function",
            "Properties": {"Role": {"Fn::GetAtt": ["HandlerRole", "Arn"]}},
        },
        "HandlerPolicy": {
            "Type": "AWS::IAM::Policy",
            "Properties": {"Roles": [{"Ref": "HandlerRole"}], "PolicyDocument": {}},
        },
        "Deployment": {"Type": "Custom::CDKBucketDeployment", "Properties": _deployment("v2.zip")},
    }
}

DEPLOYED = {
    "Website": "my-website",
    "HandlerRole": "handler-role",
    "Handler": "deployment-handler",
    "HandlerPolicy": "handler-policy",
}


class TestBucketDeploymentDetector:
    def test_deployment_handler_is_invoked(self, create_evaluator, stack_resources, clients, client_factory):
        stack_resources(DEPLOYED)
        change = _candidate(
            "Deployment", "Custom::CDKBucketDeployment", _deployment("v1.zip"), _deployment("v2.zip")
        )

        result = is_hotswappable_s3_bucket_deployment_change(
            "Deployment", change, create_evaluator(TEMPLATE), HotswapPropertyOverrides()
        )

        assert len(result) == 1
        assert result[0].resource_names == ["Contents of S3 Bucket 'my-website'"]
        assert result[0].props_changed == ["*"]

        result[0].apply(clients)

        invoke = client_factory.clients["lambda"].invoke
        invoke.assert_called_once()
        assert invoke.call_args.kwargs["FunctionName"] == HANDLER_ARN
        payload = json.loads(invoke.call_args.kwargs["Payload"])
        assert payload["RequestType"] == "Update"
        assert payload["ResponseURL"] == REQUIRED_BY_CFN
        assert payload["ResourceProperties"] == {
            "SourceBucketNames": ["assets"],
            "SourceObjectKeys": ["v2.zip"],
            "DestinationBucketName": "my-website",
            "Prune": "true",
        }


class TestIamPolicyDetector:
    def test_policy_of_deployment_handler_is_ignored(self, create_evaluator, stack_resources):
        stack_resources(DEPLOYED)
        old = {"Roles": [{"Ref": "HandlerRole"}], "PolicyDocument": {"Statement": ["v1.zip"]}}
        new = {"Roles": [{"Ref": "HandlerRole"}], "PolicyDocument": {"Statement": ["v2.zip"]}}

        result = is_hotswappable_iam_policy_change(
            "HandlerPolicy",
            _candidate("HandlerPolicy", "AWS::IAM::Policy", old, new),
            create_evaluator(TEMPLATE),
            HotswapPropertyOverrides(),
        )

        assert result == []

    def test_other_policies_are_not_supported(self, create_evaluator, stack_resources):
        stack_resources({**DEPLOYED, "AppRole": "app-role"})
        template = {
            "Resources": {
                **TEMPLATE["Resources"],
                "AppRole": {"Type": "AWS::IAM::Role"},
                "App": {"Type": "AWS::EC2::Instance", "Properties": {"Role": {"Ref": "AppRole"}}},
            }
        }
        old = {"Roles": [{"Ref": "AppRole"}], "PolicyDocument": {"Statement": ["a"]}}
        new = {"Roles": [{"Ref": "AppRole"}], "PolicyDocument": {"Statement": ["b"]}}

        result = is_hotswappable_iam_policy_change(
            "AppPolicy",
            _candidate("AppPolicy", "AWS::IAM::Policy", old, new),
            create_evaluator(template),
            HotswapPropertyOverrides(),
        )

        assert len(result) == 1
        assert result[0].reason == "This resource type is not supported for hotswap deployments"
        assert not result[0].hotswap_only_visible

    def test_policy_without_roles_is_not_supported(self, create_evaluator):
        old = {"Users": ["a"], "PolicyDocument": {"Statement": ["a"]}}
        new = {"Users": ["a"], "PolicyDocument": {"Statement": ["b"]}}

        result = is_hotswappable_iam_policy_change(
            "UserPolicy",
            _candidate("UserPolicy", "AWS::IAM::Policy", old, new),
            create_evaluator({}),
            HotswapPropertyOverrides(),
        )

        assert len(result) == 1
        assert not result[0].hotswappable


def test_stringify_object():
    assert stringify_object({"a": [1, True, None], "b": {"c": 2.5}}) == {
        "a": ["1", "true", None],
        "b": {"c": "2.5"},
    }
