from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.hotswap.common import (
    ChangeHotswapResult,
    HotswappableChange,
    HotswappableChangeCandidate,
    HotswapPropertyOverrides,
    classify_changes,
    lower_case_first_character,
    transform_object_keys,
)

CODEBUILD_PROJECT = "AWS::CodeBuild::Project"


def convert_source_cloudformation_key_to_sdk_key(key: str) -> str:
    if key.lower() == "buildspec":
        return key.lower()
    return lower_case_first_character(key)


def is_hotswappable_code_build_project_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    if change.resource_type != CODEBUILD_PROJECT:
        return []

    ret: ChangeHotswapResult = []
    classified_changes = classify_changes(change, ["Source", "Environment", "SourceVersion"])
    classified_changes.report_non_hotswappable_property_changes(ret)

    names_of_hotswappable_changes = classified_changes.names_of_hotswappable_props
    if not names_of_hotswappable_changes:
        return ret

    project_name = evaluate_cfn_template.establish_resource_physical_name(
        logical_id, (change.new_value.get("Properties") or {}).get("Name")
    )

    def _apply(clients: ServiceLevelClientFactory) -> None:
        if not project_name:
            return
        update_project_input = {"name": project_name}
        for name, update in classified_changes.hotswappable_props.items():
            value = evaluate_cfn_template.evaluate_cfn_expression(update.new_value)
            if name == "Source":
                update_project_input["source"] = transform_object_keys(
                    value, convert_source_cloudformation_key_to_sdk_key
                )
            elif name == "Environment":
                update_project_input["environment"] = transform_object_keys(
                    value, lower_case_first_character
                )
            elif name == "SourceVersion":
                update_project_input["sourceVersion"] = value
        clients.codebuild.update_project(**update_project_input)

    ret.append(
        HotswappableChange(
            resource_type=change.resource_type,
            props_changed=names_of_hotswappable_changes,
            service="codebuild",
            resource_names=[f"CodeBuild Project '{project_name}'"],
            apply=_apply,
        )
    )
    return ret
