"""Application of hotswappable changes through their service APIs."""
import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

from cfn_hotswap import config
from cfn_hotswap.aws.connect import ServiceLevelClientFactory
from cfn_hotswap.constants import HOTSWAP_USER_AGENT_PREFIX, ICON, MAX_CONCURRENT_HOTSWAPS
from cfn_hotswap.hotswap.common import HotswappableChange
from cfn_hotswap.hotswap.errors import is_waiter_error, translate_waiter_error

LOG = logging.getLogger(__name__)


def apply_all_hotswappable_changes(
    clients: ServiceLevelClientFactory, hotswappable_changes: list[HotswappableChange]
) -> None:
    """
    Applies all changes, at most ``MAX_CONCURRENT_HOTSWAPS`` of them at the same time.

    The first failing change fails the whole batch: changes that have not been started yet are cancelled, changes
    that are in flight are not waited for.
    """
    if hotswappable_changes:
        LOG.info("\n%s hotswapping resources:", ICON)

    executor = ThreadPoolExecutor(
        max_workers=MAX_CONCURRENT_HOTSWAPS, thread_name_prefix="hotswap"
    )
    try:
        futures = [
            executor.submit(apply_hotswappable_change, clients, change)
            for change in hotswappable_changes
        ]
        done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        for future in futures:
            if future in done and future.exception() is not None:
                for pending in not_done:
                    pending.cancel()
                raise future.exception()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)


def apply_hotswappable_change(
    clients: ServiceLevelClientFactory, hotswap_operation: HotswappableChange
) -> None:
    # the calls of the operation are attributed to the hotswapped service
    operation_clients = clients.with_user_agent_extra(
        f"{HOTSWAP_USER_AGENT_PREFIX}{hotswap_operation.service}"
    )

    for name in hotswap_operation.resource_names:
        LOG.info("   %s hotswapping %s", ICON, name)

    try:
        hotswap_operation.apply(operation_clients)
    except Exception as e:
        if config.HOTSWAP_VERBOSE_ERRORS:
            LOG.exception("Error while hotswapping %s", hotswap_operation.resource_type)
        else:
            LOG.debug("Error while hotswapping %s: %s", hotswap_operation.resource_type, e)
        if is_waiter_error(e):
            raise translate_waiter_error(e) from e
        raise

    for name in hotswap_operation.resource_names:
        LOG.info("%s %s hotswapped!", ICON, name)
