"""
Classification of the changes of a stack diff into hotswappable and non-hotswappable changes.

Structural decisions (created, destroyed, type changed, unsupported, changed outputs) are made here, every other
change is passed to the detector registered for its resource type. Nested stacks are classified recursively.
"""
import functools
import logging
from typing import Callable, Optional

from cfn_hotswap.constants import NESTED_STACK_RESOURCE_TYPE, STACK_OUTPUT_RESOURCE_TYPE
from cfn_hotswap.engine.diff import full_diff
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate
from cfn_hotswap.engine.types import NestedStackTemplates, ResourceDifference, TemplateDiff
from cfn_hotswap.hotswap.common import (
    ChangeHotswapResult,
    ClassifiedResourceChanges,
    HotswappableChangeCandidate,
    HotswapPropertyOverrides,
    NonHotswappableChange,
    report_non_hotswappable_change,
)
from cfn_hotswap.hotswap.registry import get_detector
from cfn_hotswap.hotswap.renames import get_stack_resource_differences

LOG = logging.getLogger(__name__)


def classify_resource_changes(
    stack_changes: TemplateDiff,
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    nested_stack_templates: dict[str, NestedStackTemplates],
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ClassifiedResourceChanges:
    """
    Classifies all changes of the given diff.

    The detectors are only invoked after all changes have been inspected, one after the other. An error raised by a
    detector is not handled and aborts the classification.

    :param stack_changes: the diff between the deployed and the generated template of the stack
    :param evaluate_cfn_template: evaluator of the generated template of the stack
    :param nested_stack_templates: the templates of the nested stacks, keyed by their logical id
    :param hotswap_property_overrides: passed through to the detectors as is
    :return: the hotswappable and the non-hotswappable changes of the stack and its nested stacks
    """
    result = ClassifiedResourceChanges()
    pending_detections: list[Callable[[], ChangeHotswapResult]] = []

    for output_name in stack_changes.outputs:
        result.non_hotswappable_changes.append(
            NonHotswappableChange(
                logical_id=output_name,
                resource_type=STACK_OUTPUT_RESOURCE_TYPE,
                reason="output was changed",
            )
        )

    resource_differences = get_stack_resource_differences(stack_changes)
    for logical_id, change in resource_differences.items():
        if (
            change.old_resource_type == NESTED_STACK_RESOURCE_TYPE
            and change.new_resource_type == NESTED_STACK_RESOURCE_TYPE
        ):
            nested_changes = find_nested_hotswappable_changes(
                logical_id,
                change,
                nested_stack_templates,
                evaluate_cfn_template,
                hotswap_property_overrides,
            )
            result.hotswappable_changes.extend(nested_changes.hotswappable_changes)
            result.non_hotswappable_changes.extend(nested_changes.non_hotswappable_changes)
            continue

        candidate = is_candidate_for_hotswapping(change, logical_id)
        if isinstance(candidate, NonHotswappableChange):
            result.non_hotswappable_changes.append(candidate)
            continue

        detector = get_detector(candidate.resource_type)
        if detector is None:
            report_non_hotswappable_change(
                result.non_hotswappable_changes,
                candidate,
                reason="This resource type is not supported for hotswap deployments",
            )
            continue

        pending_detections.append(
            functools.partial(
                detector, logical_id, candidate, evaluate_cfn_template, hotswap_property_overrides
            )
        )

    # one detector at a time, to limit the number of concurrent calls against the account
    for detect in pending_detections:
        for outcome in detect():
            if outcome.hotswappable:
                result.hotswappable_changes.append(outcome)
            else:
                result.non_hotswappable_changes.append(outcome)

    return result


def find_nested_hotswappable_changes(
    logical_id: str,
    change: ResourceDifference,
    nested_stack_templates: dict[str, NestedStackTemplates],
    evaluate_cfn_template: EvaluateCloudFormationTemplate,
    hotswap_property_overrides: HotswapPropertyOverrides,
) -> ClassifiedResourceChanges:
    nested_stack: Optional[NestedStackTemplates] = nested_stack_templates.get(logical_id)
    if nested_stack is None or not nested_stack.physical_name:
        return ClassifiedResourceChanges(
            non_hotswappable_changes=[
                NonHotswappableChange(
                    logical_id=logical_id,
                    resource_type=NESTED_STACK_RESOURCE_TYPE,
                    reason=f"physical name for {NESTED_STACK_RESOURCE_TYPE} '{logical_id}' could not be found in "
                    f"CloudFormation, so this is a newly created nested stack and cannot be hotswapped",
                )
            ]
        )

    evaluate_nested_cfn_template = evaluate_cfn_template.create_nested_evaluate_cloudformation_template(
        nested_stack.physical_name,
        nested_stack.generated_template,
        change.new_properties.get("Parameters"),
    )
    nested_diff = full_diff(nested_stack.deployed_template, nested_stack.generated_template)
    LOG.debug("Classifying changes of nested stack %s", nested_stack.physical_name)
    return classify_resource_changes(
        nested_diff,
        evaluate_nested_cfn_template,
        nested_stack.nested_stack_templates,
        hotswap_property_overrides,
    )


def is_candidate_for_hotswapping(
    change: ResourceDifference, logical_id: str
):
    """
    Returns the change as a candidate for a detector, or the reason why it cannot be hotswapped.

    :return: a ``HotswappableChangeCandidate`` or a ``NonHotswappableChange``
    """
    if change.old_value is None:
        return NonHotswappableChange(
            logical_id=logical_id,
            resource_type=change.new_resource_type,
            reason=f"resource '{logical_id}' was created by this deployment",
        )

    if change.new_value is None:
        return NonHotswappableChange(
            logical_id=logical_id,
            resource_type=change.old_resource_type,
            reason=f"resource '{logical_id}' was destroyed by this deployment",
        )

    if change.old_resource_type != change.new_resource_type:
        return NonHotswappableChange(
            logical_id=logical_id,
            resource_type=change.new_resource_type,
            reason=f"resource '{logical_id}' had its type changed from '{change.old_resource_type}' "
            f"to '{change.new_resource_type}'",
        )

    return HotswappableChangeCandidate(
        logical_id=logical_id,
        old_value=change.old_value,
        new_value=change.new_value,
        property_updates=change.property_updates,
    )
