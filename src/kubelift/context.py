from typing import Any

from .core import (
    CONTEXT_DESTROY,
    CONTEXT_ENABLE_AUTOSCALER,
    CONTEXT_MASTER_VERSION,
    CONTEXT_UPGRADE_TIMEOUT,
    CONTEXT_WORKERS_VERSION,
)
from .schemas.cluster import ClusterSpec
from .schemas.nodepool import NodePoolDesiredState


def build_provisioning_context(
    cluster: ClusterSpec,
    desired_states: list[NodePoolDesiredState],
    upgrade_timeout_in_min: int,
) -> dict[str, Any]:
    """
    Builds the key/value context handed to the IaC backend.
    Providers add their own keys on top of it.
    """
    return {
        "cluster_id": cluster.id,
        "cluster_long_id": str(cluster.long_id),
        "cluster_name": cluster.name,
        "region": cluster.region,
        "zones": list(cluster.zones),
        CONTEXT_MASTER_VERSION: cluster.version,
        CONTEXT_WORKERS_VERSION: cluster.version,
        CONTEXT_ENABLE_AUTOSCALER: True,
        CONTEXT_UPGRADE_TIMEOUT: upgrade_timeout_in_min,
        "node_pools": [state.model_dump(mode="json") for state in desired_states],
        "options": dict(cluster.options),
        "advanced_settings": cluster.advanced_settings.model_dump(mode="json"),
        CONTEXT_DESTROY: False,
    }
