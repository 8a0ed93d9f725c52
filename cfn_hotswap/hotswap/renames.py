"""
Collapsing of logical id renames.

Renaming the logical id of a resource shows up in a template diff as the removal of the old id and the addition of
the new one. For the hotswap engine such a pair is a single change of one resource.
"""
import logging
from typing import Optional

from cfn_hotswap.engine.types import ResourceDifference, TemplateDiff

LOG = logging.getLogger(__name__)


def changes_are_for_same_resource(
    removal: ResourceDifference, addition: ResourceDifference
) -> bool:
    return (
        removal.old_resource_type == addition.new_resource_type
        and removal.old_properties == addition.new_properties
    )


def make_rename_difference(
    removal: ResourceDifference, addition: ResourceDifference
) -> ResourceDifference:
    # the old value is taken from the removal, otherwise the change would be classified as a creation.
    # the property updates stay those of the addition, so every property of the new resource counts as changed
    return ResourceDifference(
        old_value=removal.old_value,
        new_value=addition.new_value,
        property_updates=addition.property_updates,
    )


def _find_identical_removal(
    addition: ResourceDifference, removals: dict[str, ResourceDifference]
) -> Optional[str]:
    # the lowest logical id wins if several removed resources are identical to the added one
    for logical_id in sorted(removals):
        if changes_are_for_same_resource(removals[logical_id], addition):
            return logical_id
    return None


def get_stack_resource_differences(stack_changes: TemplateDiff) -> dict[str, ResourceDifference]:
    """
    Returns all resource changes of the given diff, with rename pairs collapsed into one change keyed by the new
    logical id.

    :param stack_changes: the diff of a stack
    :return: the remaining removals, followed by all other changes
    """
    all_changes = stack_changes.resources
    removals = {logical_id: c for logical_id, c in all_changes.items() if c.is_removal}
    non_removals = {logical_id: c for logical_id, c in all_changes.items() if not c.is_removal}

    for logical_id, change in non_removals.items():
        if not change.is_addition:
            continue
        removed_logical_id = _find_identical_removal(change, removals)
        if removed_logical_id is None:
            continue
        LOG.debug("Treating %s as renamed to %s", removed_logical_id, logical_id)
        non_removals[logical_id] = make_rename_difference(removals.pop(removed_logical_id), change)

    return {**removals, **non_removals}
