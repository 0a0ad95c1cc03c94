from collections.abc import Callable, Mapping

from rich.markup import escape

from .collaborators import NodePoolClient
from .logger import logger
from .schemas.cluster import ActionKind, ClusterAction, NodePoolSpec
from .schemas.nodepool import NodePoolDesiredState


def _clamp(pool: NodePoolSpec, nodes: int) -> tuple[bool, int]:
    # desired nodes can't be lower than min nodes nor higher than max nodes
    if nodes < pool.min_nodes:
        return True, pool.min_nodes
    if nodes > pool.max_nodes:
        return True, pool.max_nodes
    return False, nodes


def _desired_state(
    pool: NodePoolSpec, desired_size: int, force: bool
) -> NodePoolDesiredState:
    return NodePoolDesiredState(
        name=pool.name,
        min_nodes=pool.min_nodes,
        max_nodes=pool.max_nodes,
        desired_size=desired_size,
        enable_desired_size=force,
        instance_type=pool.instance_type,
        disk_size_in_gib=pool.disk_size_in_gib,
        instance_architecture=pool.instance_architecture,
    )


def reconcile(action: ClusterAction, pool: NodePoolSpec) -> NodePoolDesiredState:
    """
    Computes how many nodes a pool should run after a lifecycle action and
    whether that size must be forced instead of left to the autoscaler.
    Always returns a size within [min_nodes, max_nodes].
    """
    kind = action.kind

    if kind is ActionKind.BOOTSTRAP:
        # the first autoscaler install requires an explicit desired size
        return _desired_state(pool, pool.min_nodes, True)

    if kind in (ActionKind.UPDATE, ActionKind.UPGRADE):
        if action.current_nodes is None:
            # pool may have been deleted manually, assert a safe value
            return _desired_state(pool, pool.max_nodes, True)
        forced, size = _clamp(pool, action.current_nodes)
        return _desired_state(pool, size, forced)

    if kind in (ActionKind.PAUSE, ActionKind.DELETE):
        return _desired_state(pool, pool.min_nodes, False)

    # Resume: no pre-pause state is persisted, always force for a fast return
    if action.current_nodes is None:
        return _desired_state(pool, pool.min_nodes, True)
    _, size = _clamp(pool, action.current_nodes)
    return _desired_state(pool, size, True)


def reconcile_all(
    make_action: Callable[[int | None], ClusterAction],
    pools: list[NodePoolSpec],
    current_sizes: Mapping[str, int | None],
) -> list[NodePoolDesiredState]:
    """Reconciles every pool, feeding each its own observed size (None if unknown)."""
    return [reconcile(make_action(current_sizes.get(p.name)), p) for p in pools]


def observed_node_counts(
    client: NodePoolClient, cluster_name: str, pools: list[NodePoolSpec]
) -> dict[str, int | None]:
    """Current node count per pool as reported by the cloud, None when the lookup fails."""
    sizes: dict[str, int | None] = {}
    for pool in pools:
        try:
            sizes[pool.name] = client.current_node_count(cluster_name, pool.name)
        except Exception as e:
            logger.warning(
                f"Couldn't get current size of node pool {pool.name}: {escape(str(e))}"
            )
            sizes[pool.name] = None
    return sizes
