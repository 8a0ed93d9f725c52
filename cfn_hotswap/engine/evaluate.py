"""
Evaluation of CloudFormation expressions of a template against the resources of the deployed stack.

Detectors use this to compute the values a hotswap operation has to send (e.g., the physical name of a function, or
an S3 location that contains a reference to a bucket), without deploying anything.
"""
from __future__ import annotations

import base64
import logging
import re
from typing import Any, Callable, Optional

from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.constants import DEFAULT_PARTITION
from cfn_hotswap.engine.types import Template
from cfn_hotswap.exceptions import CfnEvaluationException

LOG = logging.getLogger(__name__)

REGEX_SUB_PLACEHOLDER = re.compile(r"\$\{([^!][^}]*)\}")
REGEX_SUB_LITERAL = re.compile(r"\$\{!([^}]*)\}")


class LazyListStackResources:
    """Lists the resources of a deployed stack on first access."""

    def __init__(self, clients: ServiceLevelClientFactory, stack_name: str):
        self.clients = clients
        self.stack_name = stack_name
        self._stack_resources: Optional[list[dict]] = None

    def list_stack_resources(self) -> list[dict]:
        if self._stack_resources is None:
            LOG.debug("Listing resources of deployed stack %s", self.stack_name)
            paginator = self.clients.cloudformation.get_paginator("list_stack_resources")
            resources = []
            for page in paginator.paginate(StackName=self.stack_name):
                resources.extend(page.get("StackResourceSummaries", []))
            self._stack_resources = resources
        return self._stack_resources


class LazyLookupExport:
    """Looks up stack exports, listing all exports of the region at most once."""

    def __init__(self, clients: ServiceLevelClientFactory):
        self.clients = clients
        self._exports: Optional[dict[str, dict]] = None

    def lookup_export(self, name: str) -> Optional[dict]:
        if self._exports is None:
            paginator = self.clients.cloudformation.get_paginator("list_exports")
            self._exports = {}
            for page in paginator.paginate():
                for export in page.get("Exports", []):
                    self._exports[export["Name"]] = export
        return self._exports.get(name)


def _arn(fmt: str) -> Callable[[str, dict], str]:
    return lambda physical_id, ctx: fmt.format(name=physical_id, **ctx)


def _last(separator: str) -> Callable[[str, dict], str]:
    return lambda physical_id, ctx: physical_id.split(separator)[-1]


def _identity(physical_id: str, ctx: dict) -> str:
    return physical_id


# how the value of `Fn::GetAtt` is derived from the physical resource id, per resource type and attribute
RESOURCE_TYPE_ATTRIBUTES_FORMATS: dict[str, dict[str, Callable[[str, dict], str]]] = {
    "AWS::IAM::Role": {"Arn": _arn("arn:{partition}:iam::{account}:role/{name}")},
    "AWS::IAM::User": {"Arn": _arn("arn:{partition}:iam::{account}:user/{name}")},
    "AWS::Lambda::Function": {
        "Arn": _arn("arn:{partition}:lambda:{region}:{account}:function:{name}")
    },
    "AWS::Lambda::Version": {"Version": _last(":")},
    "AWS::S3::Bucket": {
        "Arn": _arn("arn:{partition}:s3:::{name}"),
        "DomainName": _arn("{name}.s3.{url_suffix}"),
        "RegionalDomainName": _arn("{name}.s3.{region}.{url_suffix}"),
    },
    "AWS::SQS::Queue": {
        "Arn": lambda physical_id, ctx: "arn:{partition}:sqs:{region}:{account}:{name}".format(
            name=physical_id.split("/")[-1], **ctx
        ),
        "QueueName": _last("/"),
        "QueueUrl": _identity,
    },
    "AWS::SNS::Topic": {"TopicArn": _identity, "TopicName": _last(":")},
    "AWS::DynamoDB::Table": {
        "Arn": _arn("arn:{partition}:dynamodb:{region}:{account}:table/{name}")
    },
    "AWS::StepFunctions::StateMachine": {"Arn": _identity, "Name": _last(":")},
    "AWS::ECS::TaskDefinition": {"TaskDefinitionArn": _identity},
    "AWS::ECS::Service": {"ServiceArn": _identity, "Name": _last("/")},
    "AWS::CodeBuild::Project": {
        "Arn": _arn("arn:{partition}:codebuild:{region}:{account}:project/{name}")
    },
    "AWS::AppSync::GraphQLApi": {"ApiId": _last("/"), "Arn": _identity},
    "AWS::AppSync::FunctionConfiguration": {"FunctionId": _last("/"), "FunctionArn": _identity},
    "AWS::AppSync::DataSource": {"Name": _last("/"), "DataSourceArn": _identity},
    "AWS::KMS::Key": {"Arn": _arn("arn:{partition}:kms:{region}:{account}:key/{name}")},
}


def _references_logical_id(value: Any, logical_id: str) -> bool:
    if isinstance(value, dict):
        if len(value) == 1:
            key, arg = next(iter(value.items()))
            if key == "Ref" and arg == logical_id:
                return True
            if key == "Fn::GetAtt":
                target = arg.split(".", 1)[0] if isinstance(arg, str) else arg[0]
                if target == logical_id:
                    return True
            if key == "Fn::Sub":
                template = arg if isinstance(arg, str) else arg[0]
                for placeholder in REGEX_SUB_PLACEHOLDER.findall(template):
                    if placeholder.split(".", 1)[0] == logical_id:
                        return True
        return any(_references_logical_id(v, logical_id) for v in value.values())
    if isinstance(value, list):
        return any(_references_logical_id(v, logical_id) for v in value)
    return False


class EvaluateCloudFormationTemplate:
    """
    Evaluates expressions of a (generated) template against the deployed stack with the same name.

    Resource references are resolved to the physical ids of the deployed resources, parameters to the given
    values (or their defaults), and pseudo parameters to the resolved environment.
    """

    def __init__(
        self,
        stack_name: str,
        template: Template,
        parameters: Optional[dict[str, Any]],
        account: str,
        region: str,
        partition: str,
        clients: ServiceLevelClientFactory,
        url_suffix: Optional[str] = None,
    ):
        self.stack_name = stack_name
        self.template = template or {}
        self.account = account
        self.region = region
        self.partition = partition or DEFAULT_PARTITION
        self.clients = clients
        self.url_suffix = url_suffix or (
            "amazonaws.com.cn" if self.partition == "aws-cn" else "amazonaws.com"
        )

        self.stack_resources = LazyListStackResources(clients, stack_name)
        self.exports = LazyLookupExport(clients)

        parameter_defaults = {
            name: definition["Default"]
            for name, definition in (self.template.get("Parameters") or {}).items()
            if "Default" in definition
        }
        self.context = {
            "AWS::AccountId": account,
            "AWS::Region": region,
            "AWS::Partition": self.partition,
            "AWS::URLSuffix": self.url_suffix,
            "AWS::StackName": stack_name,
            **parameter_defaults,
            **(parameters or {}),
        }

    @property
    def resources(self) -> dict[str, dict]:
        return self.template.get("Resources") or {}

    def create_nested_evaluate_cloudformation_template(
        self,
        stack_name: str,
        nested_template: Template,
        nested_stack_parameters: Optional[dict[str, Any]] = None,
    ) -> "EvaluateCloudFormationTemplate":
        """
        Creates the evaluator of a nested stack. The parameters of the nested stack are evaluated in the context of
        this (the parent) stack.
        """
        evaluated_parameters = {
            name: self.evaluate_cfn_expression(value)
            for name, value in (nested_stack_parameters or {}).items()
        }
        return EvaluateCloudFormationTemplate(
            stack_name=stack_name,
            template=nested_template,
            parameters=evaluated_parameters,
            account=self.account,
            region=self.region,
            partition=self.partition,
            clients=self.clients,
            url_suffix=self.url_suffix,
        )

    def establish_resource_physical_name(
        self, logical_id: str, physical_name_in_template: Any = None
    ) -> Optional[str]:
        if physical_name_in_template is not None:
            try:
                return self.evaluate_cfn_expression(physical_name_in_template)
            except CfnEvaluationException:
                # fall back to the name of the deployed resource
                pass
        return self.find_physical_name_for(logical_id)

    def find_physical_name_for(self, logical_id: str) -> Optional[str]:
        for resource in self.stack_resources.list_stack_resources():
            if resource.get("LogicalResourceId") == logical_id:
                return resource.get("PhysicalResourceId")
        return None

    def find_logical_id_for_physical_name(self, physical_name: str) -> Optional[str]:
        for resource in self.stack_resources.list_stack_resources():
            if resource.get("PhysicalResourceId") == physical_name:
                return resource.get("LogicalResourceId")
        return None

    def find_references_to(self, logical_id: str) -> list[dict]:
        """Returns the definitions (with an added ``LogicalId``) of all resources referencing the given one."""
        return [
            {"LogicalId": other_id, **definition}
            for other_id, definition in self.resources.items()
            if other_id != logical_id and _references_logical_id(definition, logical_id)
        ]

    def get_resource_property(self, logical_id: str, property_name: str) -> Any:
        return ((self.resources.get(logical_id) or {}).get("Properties") or {}).get(property_name)

    def evaluate_cfn_expression(self, expression: Any) -> Any:
        if isinstance(expression, list):
            return [self.evaluate_cfn_expression(item) for item in expression]

        if not isinstance(expression, dict):
            return expression

        if len(expression) == 1:
            key, argument = next(iter(expression.items()))
            if key == "Ref":
                return self._evaluate_ref(argument)
            if key.startswith("Fn::"):
                return self._evaluate_intrinsic(key, argument)

        return {key: self.evaluate_cfn_expression(value) for key, value in expression.items()}

    def _evaluate_intrinsic(self, name: str, argument: Any) -> Any:
        if name == "Fn::GetAtt":
            if isinstance(argument, str):
                argument = argument.split(".", 1)
            logical_id, attribute = argument
            return self._evaluate_get_att(logical_id, self.evaluate_cfn_expression(attribute))

        if name == "Fn::Join":
            delimiter, values = argument
            values = self.evaluate_cfn_expression(values)
            return delimiter.join(str(value) for value in values)

        if name == "Fn::Split":
            delimiter, value = argument
            return str(self.evaluate_cfn_expression(value)).split(delimiter)

        if name == "Fn::Select":
            index, values = argument
            values = self.evaluate_cfn_expression(values)
            return values[int(self.evaluate_cfn_expression(index))]

        if name == "Fn::Sub":
            return self._evaluate_sub(argument)

        if name == "Fn::Base64":
            value = str(self.evaluate_cfn_expression(argument))
            return base64.b64encode(value.encode("utf-8")).decode("utf-8")

        if name == "Fn::FindInMap":
            map_name, top_key, second_key = self.evaluate_cfn_expression(argument)
            try:
                return self.template["Mappings"][map_name][top_key][second_key]
            except KeyError:
                raise CfnEvaluationException(
                    f"Mapping '{map_name}' has no value for '{top_key}.{second_key}'"
                )

        if name == "Fn::ImportValue":
            export_name = self.evaluate_cfn_expression(argument)
            export = self.exports.lookup_export(export_name)
            if not export:
                raise CfnEvaluationException(f"Export '{export_name}' could not be found")
            return export["Value"]

        raise CfnEvaluationException(f"Evaluation of the intrinsic function '{name}' is not supported")

    def _evaluate_ref(self, name: str) -> Any:
        if name == "AWS::NoValue":
            return None
        if name in self.context:
            return self.context[name]
        physical_name = self.find_physical_name_for(name)
        if physical_name is None:
            raise CfnEvaluationException(
                f"Parameter or resource '{name}' could not be found for evaluation"
            )
        return physical_name

    def _evaluate_get_att(self, logical_id: str, attribute: str) -> str:
        physical_name = self.find_physical_name_for(logical_id)
        if physical_name is None:
            raise CfnEvaluationException(
                f"Resource '{logical_id}' could not be found for evaluation of attribute '{attribute}'"
            )
        resource_type = (self.resources.get(logical_id) or {}).get("Type")
        formatter = RESOURCE_TYPE_ATTRIBUTES_FORMATS.get(resource_type, {}).get(attribute)
        if not formatter:
            raise CfnEvaluationException(
                f"The '{attribute}' attribute of resource type '{resource_type}' is not supported for evaluation"
            )
        ctx = {
            "partition": self.partition,
            "region": self.region,
            "account": self.account,
            "url_suffix": self.url_suffix,
        }
        return formatter(physical_name, ctx)

    def _evaluate_sub(self, argument: Any) -> str:
        if isinstance(argument, str):
            template, variables = argument, {}
        else:
            template, variables = argument
            variables = {
                key: self.evaluate_cfn_expression(value) for key, value in variables.items()
            }

        def _replace(match: re.Match) -> str:
            placeholder = match.group(1).strip()
            if placeholder in variables:
                return str(variables[placeholder])
            if "." in placeholder:
                logical_id, attribute = placeholder.split(".", 1)
                return str(self._evaluate_get_att(logical_id, attribute))
            return str(self._evaluate_ref(placeholder))

        result = REGEX_SUB_PLACEHOLDER.sub(_replace, template)
        return REGEX_SUB_LITERAL.sub(lambda match: "${" + match.group(1) + "}", result)
