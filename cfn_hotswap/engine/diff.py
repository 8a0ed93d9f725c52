"""
Structural diff of two CloudFormation templates.

Only the parts of a template the hotswap engine looks at are compared: resources (on the level of their top-level
properties) and outputs.
"""
import logging

from cfn_hotswap.engine.types import (
    Difference,
    PropertyDifference,
    ResourceDifference,
    Template,
    TemplateDiff,
)

LOG = logging.getLogger(__name__)


def diff_resource(old_value: dict | None, new_value: dict | None) -> ResourceDifference:
    old_properties = (old_value or {}).get("Properties") or {}
    new_properties = (new_value or {}).get("Properties") or {}
    property_updates = {}
    for name in {**old_properties, **new_properties}:
        old_property = old_properties.get(name)
        new_property = new_properties.get(name)
        if old_property != new_property:
            property_updates[name] = PropertyDifference(old_property, new_property)
    return ResourceDifference(
        old_value=old_value, new_value=new_value, property_updates=property_updates
    )


def diff_resources(current: dict, desired: dict) -> dict[str, ResourceDifference]:
    changes = {}
    for logical_id in {**current, **desired}:
        old_value = current.get(logical_id)
        new_value = desired.get(logical_id)
        if old_value == new_value:
            continue
        changes[logical_id] = diff_resource(old_value, new_value)
    return changes


def diff_outputs(current: dict, desired: dict) -> dict[str, Difference]:
    return {
        name: Difference(current.get(name), desired.get(name))
        for name in {**current, **desired}
        if current.get(name) != desired.get(name)
    }


def full_diff(current_template: Template, desired_template: Template) -> TemplateDiff:
    """
    Compares the currently deployed template with the desired one.

    :param current_template: the deployed template (may be empty for a stack that does not exist yet)
    :param desired_template: the generated template
    :return: the changes of resources and outputs
    """
    current_template = current_template or {}
    desired_template = desired_template or {}
    diff = TemplateDiff(
        resources=diff_resources(
            current_template.get("Resources") or {}, desired_template.get("Resources") or {}
        ),
        outputs=diff_outputs(
            current_template.get("Outputs") or {}, desired_template.get("Outputs") or {}
        ),
    )
    LOG.debug(
        "Template diff contains %s resource change(s) and %s output change(s)",
        len(diff.resources),
        len(diff.outputs),
    )
    return diff
