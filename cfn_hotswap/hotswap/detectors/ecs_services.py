import logging
from collections import defaultdict

from cfn_hotswap import config
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

LOG = logging.getLogger(__name__)

ECS_TASK_DEFINITION = "AWS::ECS::TaskDefinition"
ECS_SERVICE = "AWS::ECS::Service"

# maps with user defined keys, which are sent to ECS as they are
TASK_DEFINITION_KEEP_CASE_OF = {
    "ContainerDefinitions": {
        "DockerLabels": True,
        "FirelensConfiguration": {"Options": True},
        "LogConfiguration": {"Options": True},
    },
    "Volumes": {"DockerVolumeConfiguration": {"DriverOpts": True, "Labels": True}},
}


def is_hotswappable_ecs_service_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    if change.resource_type != ECS_TASK_DEFINITION:
        return []

    ret: ChangeHotswapResult = []
    classified_changes = classify_changes(change, ["ContainerDefinitions"])
    classified_changes.report_non_hotswappable_property_changes(ret)

    resources_referencing_task_def = evaluate_cfn_template.find_references_to(logical_id)
    service_arns = []
    for resource in resources_referencing_task_def:
        if resource.get("Type") != ECS_SERVICE:
            continue
        service_arn = evaluate_cfn_template.find_physical_name_for(resource["LogicalId"])
        if service_arn:
            service_arns.append(service_arn)

    if not service_arns:
        # without services there is nothing to roll out, only a full deployment registers the task definition
        report_non_hotswappable_change(
            ret,
            change,
            None,
            "No ECS services reference the changed task definition",
            hotswap_only_visible=False,
        )

    for resource in resources_referencing_task_def:
        if resource.get("Type") != ECS_SERVICE:
            report_non_hotswappable_change(
                ret,
                change,
                None,
                f"A resource '{resource['LogicalId']}' with Type '{resource.get('Type')}' that is not an ECS Service "
                f"was found referencing the changed TaskDefinition '{logical_id}'",
            )

    names_of_hotswappable_changes = classified_changes.names_of_hotswappable_props
    if not names_of_hotswappable_changes:
        return ret

    task_definition = prepare_task_definition_change(evaluate_cfn_template, logical_id, change)
    ecs_properties = hotswap_property_overrides.ecs_hotswap_properties

    def _apply(clients: ServiceLevelClientFactory) -> None:
        ecs_client = clients.ecs
        response = ecs_client.register_task_definition(**task_definition)
        task_definition_arn = response["taskDefinition"]["taskDefinitionArn"]

        deployment_configuration = {
            "minimumHealthyPercent": ecs_properties.minimum_healthy_percent
            if ecs_properties.minimum_healthy_percent is not None
            else 0
        }
        if ecs_properties.maximum_healthy_percent is not None:
            deployment_configuration["maximumPercent"] = ecs_properties.maximum_healthy_percent

        services_per_cluster = defaultdict(list)
        for service_arn in service_arns:
            # arn:aws:ecs:<region>:<account>:service/<cluster>/<service>
            cluster_name = service_arn.split("/")[1]
            ecs_client.update_service(
                service=service_arn,
                taskDefinition=task_definition_arn,
                cluster=cluster_name,
                forceNewDeployment=True,
                deploymentConfiguration=deployment_configuration,
            )
            services_per_cluster[cluster_name].append(service_arn)

        for cluster_name, services in services_per_cluster.items():
            wait_for_services_stable(clients, cluster_name, services)

    ret.append(
        HotswappableChange(
            resource_type=change.resource_type,
            props_changed=names_of_hotswappable_changes,
            service="ecs-service",
            resource_names=[f"ECS Task Definition '{task_definition['family']}'"]
            + [f"ECS Service '{arn.split('/')[2]}'" for arn in service_arns],
            apply=_apply,
        )
    )
    return ret


def prepare_task_definition_change(
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    logical_id: str,
    change: HotswappableChangeCandidate,
) -> dict:
    """Returns the parameters of ``register_task_definition`` for the new revision of the task definition."""
    task_definition = {
        **(change.old_value.get("Properties") or {}),
        "ContainerDefinitions": (change.new_value.get("Properties") or {}).get("ContainerDefinitions"),
    }

    family_name_or_arn = evaluate_cfn_template.establish_resource_physical_name(
        logical_id, task_definition.get("Family")
    )
    if not family_name_or_arn:
        raise HotswapError("Failed to determine the family of the ECS TaskDefinition")
    # arn:aws:ecs:<region>:<account>:task-definition/<family>:<revision>
    if ":" in family_name_or_arn:
        family = family_name_or_arn.split(":")[5].split("/")[1]
    else:
        family = family_name_or_arn
    task_definition["Family"] = family

    evaluated = evaluate_cfn_template.evaluate_cfn_expression(task_definition)
    return transform_object_keys(evaluated, lower_case_first_character, TASK_DEFINITION_KEEP_CASE_OF)


def wait_for_services_stable(
    clients: ServiceLevelClientFactory, cluster_name: str, services: list[str]
) -> None:
    # describe_services accepts at most 10 services per call
    waiter = clients.ecs.get_waiter("services_stable")
    for i in range(0, len(services), 10):
        waiter.wait(
            cluster=cluster_name,
            services=services[i : i + 10],
            WaiterConfig={
                "Delay": config.HOTSWAP_WAITER_DELAY,
                "MaxAttempts": config.HOTSWAP_WAITER_MAX_ATTEMPTS,
            },
        )
