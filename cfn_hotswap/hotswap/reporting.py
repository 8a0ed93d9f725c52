import logging

from cfn_hotswap.hotswap.common import HotswapMode, NonHotswappableChange

LOG = logging.getLogger(__name__)

WARNING_ICON = "⚠️"


def log_non_hotswappable_changes(
    non_hotswappable_changes: list[NonHotswappableChange], hotswap_mode: HotswapMode
) -> list[NonHotswappableChange]:
    """
    Logs the changes that cannot be hotswapped. With ``HotswapMode.HOTSWAP_ONLY`` only the changes flagged as
    ``hotswap_only_visible`` are logged.

    :return: the logged changes
    """
    if hotswap_mode == HotswapMode.HOTSWAP_ONLY:
        non_hotswappable_changes = [
            change for change in non_hotswappable_changes if change.hotswap_only_visible
        ]
    if not non_hotswappable_changes:
        return []

    messages = [""]
    if hotswap_mode == HotswapMode.HOTSWAP_ONLY:
        messages.append(
            f"{WARNING_ICON} The following non-hotswappable changes were found. To reconcile these using "
            f"CloudFormation, deploy without --hotswap-only"
        )
    else:
        messages.append(f"{WARNING_ICON} The following non-hotswappable changes were found:")

    for change in non_hotswappable_changes:
        if change.rejected_changes:
            messages.append(
                f"    logicalID: {change.logical_id}, type: {change.resource_type}, "
                f"rejected changes: {', '.join(change.rejected_changes)}, reason: {change.reason}"
            )
        else:
            messages.append(
                f"    logicalID: {change.logical_id}, type: {change.resource_type}, reason: {change.reason}"
            )
    messages.append("")

    LOG.info("\n".join(messages))
    return non_hotswappable_changes
