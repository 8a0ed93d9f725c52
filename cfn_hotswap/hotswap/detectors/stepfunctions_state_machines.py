import json

from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.hotswap.common import (
    ChangeHotswapResult,
    HotswappableChange,
    HotswappableChangeCandidate,
    HotswapPropertyOverrides,
    classify_changes,
)

STATE_MACHINE = "AWS::StepFunctions::StateMachine"


def is_hotswappable_state_machine_change(
    logical_id: str,
    change: HotswappableChangeCandidate,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ChangeHotswapResult:
    if change.resource_type != STATE_MACHINE:
        return []

    ret: ChangeHotswapResult = []
    classified_changes = classify_changes(change, ["DefinitionString", "Definition"])
    classified_changes.report_non_hotswappable_property_changes(ret)

    names_of_hotswappable_changes = classified_changes.names_of_hotswappable_props
    if not names_of_hotswappable_changes:
        return ret

    state_machine_name = (change.new_value.get("Properties") or {}).get("StateMachineName")
    if state_machine_name:
        state_machine_arn = evaluate_cfn_template.evaluate_cfn_expression(
            {
                "Fn::Join": [
                    ":",
                    [
                        "arn",
                        {"Ref": "AWS::Partition"},
                        "states",
                        {"Ref": "AWS::Region"},
                        {"Ref": "AWS::AccountId"},
                        "stateMachine",
                        state_machine_name,
                    ],
                ]
            }
        )
    else:
        state_machine_arn = evaluate_cfn_template.find_physical_name_for(logical_id)

    display_name = state_machine_arn.split(":")[6] if state_machine_arn else None

    def _apply(clients: ServiceLevelClientFactory) -> None:
        if not state_machine_arn:
            return
        if "DefinitionString" in classified_changes.hotswappable_props:
            definition = evaluate_cfn_template.evaluate_cfn_expression(
                classified_changes.hotswappable_props["DefinitionString"].new_value
            )
        else:
            definition = json.dumps(
                evaluate_cfn_template.evaluate_cfn_expression(
                    classified_changes.hotswappable_props["Definition"].new_value
                )
            )
        clients.stepfunctions.update_state_machine(
            stateMachineArn=state_machine_arn, definition=definition
        )

    ret.append(
        HotswappableChange(
            resource_type=change.resource_type,
            props_changed=names_of_hotswappable_changes,
            service="stepfunctions-service",
            resource_names=[f"{change.resource_type} '{display_name}'"],
            apply=_apply,
        )
    )
    return ret
