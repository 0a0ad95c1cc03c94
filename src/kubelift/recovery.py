from collections.abc import Callable

from .collaborators import NodePoolClient
from .errors import (
    ActionCancelledError,
    CannotListClustersError,
    ClusterNotFoundError,
    EventDetails,
    MissingNodePoolInformationError,
    NodePoolDeleteError,
    NodePoolNotFoundError,
    OneNodePoolMustBeActiveAtLeastError,
)
from .logger import logger
from .schemas.cluster import NodePoolDeletionMode
from .schemas.nodepool import FAILED_NODE_POOL_STATUSES, DescribedNodePool


def node_pool_health_message(pool: DescribedNodePool) -> str:
    name = pool.name or "unknown_node_pool_name"
    if pool.health is None:
        status = "can't get node pool status from cloud provider"
    else:
        status = ", ".join(
            f"{issue.code}: "
            + (
                issue.message
                or "no provider specific message given, please contact support "
                "regarding this node pool issue"
            )
            for issue in pool.health.issues
        )
    return f"Node pool {name} health is: {status}"


def select_removable(
    pools: list[DescribedNodePool | None],
) -> list[DescribedNodePool]:
    """
    Returns the failed pools (CreateFailed, DeleteFailed, Degraded) in input order.

    Refuses to select every pool of a non-empty cluster: removing all of them,
    even unhealthy ones, leaves the cluster without any node.
    """
    failed: list[DescribedNodePool] = []

    for pool in pools:
        if pool is None:
            raise NodePoolNotFoundError("No node pool found for this cluster")
        if pool.status is None:
            continue
        if pool.status in FAILED_NODE_POOL_STATUSES:
            failed.append(pool)
        else:
            logger.info(
                f"Node pool {pool.name or 'unknown name'} is in state "
                f"{pool.status.value}, it will not be deleted"
            )

    if pools and len(failed) == len(pools):
        raise OneNodePoolMustBeActiveAtLeastError(
            "At least one node pool must be active, no one can be deleted",
            pools_health=[node_pool_health_message(p) for p in failed],
        )

    return failed


def _describe_cluster_node_pools(
    client: NodePoolClient, cluster_name: str, event_details: EventDetails | None
) -> list[DescribedNodePool | None]:
    try:
        clusters = client.list_clusters()
    except Exception as e:
        raise CannotListClustersError(
            "Couldn't list clusters from cloud provider",
            event_details=event_details,
            underlying=str(e),
        ) from e

    if cluster_name not in clusters:
        raise ClusterNotFoundError(
            f"No cluster found with name {cluster_name}", event_details=event_details
        )

    try:
        names = client.list_node_pools(cluster_name)
        return client.describe_node_pools(cluster_name, names)
    except Exception as e:
        raise MissingNodePoolInformationError(
            f"Couldn't describe node pools of cluster {cluster_name}",
            event_details=event_details,
            underlying=str(e),
        ) from e


def delete_failed_or_all(
    client: NodePoolClient,
    cluster_name: str,
    is_first_install: bool,
    mode: NodePoolDeletionMode = NodePoolDeletionMode.FAILED_ONLY,
    event_details: EventDetails | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> list[str]:
    """
    Deletes the failed node pools of a cluster, or all of them on a first install
    or when mode is ALL. Stops at the first failing deletion; pools deleted
    before it stay deleted. Returns the deleted pool names.
    """
    pools = _describe_cluster_node_pools(client, cluster_name, event_details)

    if is_first_install or mode is NodePoolDeletionMode.ALL:
        # a first install has no workload to protect
        logger.info(f"Deleting all node pools of cluster {cluster_name}.")
        to_delete = pools
    else:
        try:
            to_delete = list(select_removable(pools))
        except (NodePoolNotFoundError, OneNodePoolMustBeActiveAtLeastError) as e:
            if event_details is not None:
                e.with_details(event_details)
            raise

    deleted: list[str] = []
    for pool in to_delete:
        if should_cancel is not None and should_cancel():
            raise ActionCancelledError(
                f"Node pool deletion cancelled after {len(deleted)} deletion(s)",
                event_details=event_details,
            )
        if pool is None or pool.name is None:
            raise MissingNodePoolInformationError(
                f"Node pool description without a name: {pool!r}",
                event_details=event_details,
            )

        logger.info(f"Deleting node pool {pool.name} of cluster {cluster_name}.")
        try:
            client.delete_node_pool(cluster_name, pool.name)
        except Exception as e:
            raise NodePoolDeleteError(
                f"Couldn't delete node pool {pool.name}",
                pool_name=pool.name,
                event_details=event_details,
                underlying=str(e),
            ) from e
        deleted.append(pool.name)

    return deleted
