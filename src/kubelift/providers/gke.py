import json
import re
from collections.abc import Sequence
from typing import Any

from google.api_core import exceptions as google_exceptions
from google.cloud import compute_v1, container_v1
from tenacity import retry, retry_if_not_exception_type

from ..clients import get_gke_client, get_instance_group_managers_client
from ..core import CONTEXT_WORKERS_VERSION, RETRY_CONFIG
from ..instances import GCP_INSTANCE_TYPES
from ..logger import logger
from ..schemas.nodepool import (
    DescribedNodePool,
    HealthIssue,
    NodePoolDesiredState,
    NodePoolHealth,
    NodePoolStatus,
)
from .base import Kubernetes

# GKE node pool status name -> engine status
GKE_NODE_POOL_STATUSES = {
    "PROVISIONING": NodePoolStatus.CREATING,
    "RUNNING": NodePoolStatus.ACTIVE,
    "RUNNING_WITH_ERROR": NodePoolStatus.DEGRADED,
    "RECONCILING": NodePoolStatus.UPDATING,
    "STOPPING": NodePoolStatus.DELETING,
    "ERROR": NodePoolStatus.CREATE_FAILED,
}

# https://www.googleapis.com/compute/v1/projects/P/zones/Z/instanceGroupManagers/NAME
_INSTANCE_GROUP_URL_RE = re.compile(
    r"projects/(?P<project>[^/]+)/zones/(?P<zone>[^/]+)/instanceGroup(?:Manager)?s/(?P<name>[^/]+)$"
)


class GkeNodePoolClient:
    """Node pool collaborator backed by the GKE ClusterManager API."""

    def __init__(self, project_id: str, location: str) -> None:
        self.project_id = project_id
        self.location = location

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}/locations/{self.location}"

    def _cluster_path(self, cluster_name: str) -> str:
        return f"{self.parent}/clusters/{cluster_name}"

    def _node_pool_path(self, cluster_name: str, name: str) -> str:
        return f"{self._cluster_path(cluster_name)}/nodePools/{name}"

    @retry(**RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
    def list_clusters(self) -> list[str]:
        client = get_gke_client()
        request = container_v1.ListClustersRequest(parent=self.parent)
        response = client.list_clusters(request=request)
        return [cluster.name for cluster in response.clusters]

    @retry(**RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
    def list_node_pools(self, cluster_name: str) -> list[str]:
        client = get_gke_client()
        request = container_v1.ListNodePoolsRequest(parent=self._cluster_path(cluster_name))
        response = client.list_node_pools(request=request)
        return [np.name for np in response.node_pools]

    def describe_node_pools(
        self, cluster_name: str, names: Sequence[str]
    ) -> list[DescribedNodePool | None]:
        return [self._describe_node_pool(cluster_name, name) for name in names]

    @retry(  # type: ignore[call-overload, untyped-decorator]
        **RETRY_CONFIG, retry=retry_if_not_exception_type(google_exceptions.NotFound)
    )
    def _get_node_pool(self, cluster_name: str, name: str) -> Any:
        client = get_gke_client()
        request = container_v1.GetNodePoolRequest(
            name=self._node_pool_path(cluster_name, name)
        )
        return client.get_node_pool(request=request)

    def _describe_node_pool(self, cluster_name: str, name: str) -> DescribedNodePool | None:
        try:
            np = self._get_node_pool(cluster_name, name)
        except google_exceptions.NotFound:
            logger.warning(f"Node pool {name} of cluster {cluster_name} not found")
            return None

        status = GKE_NODE_POOL_STATUSES.get(str(np.status.name))
        issues = [
            HealthIssue(code=str(c.code.name), message=c.message or None)
            for c in np.conditions
        ]
        if np.status_message and not issues:
            issues.append(HealthIssue(code=str(np.status.name), message=np.status_message))

        return DescribedNodePool(
            name=np.name,
            status=status,
            health=NodePoolHealth(issues=issues) if issues else None,
        )

    def delete_node_pool(self, cluster_name: str, name: str) -> None:
        client = get_gke_client()
        request = container_v1.DeleteNodePoolRequest(
            name=self._node_pool_path(cluster_name, name)
        )
        client.delete_node_pool(request=request)

    def current_node_count(self, cluster_name: str, name: str) -> int | None:
        """
        Sum of the target sizes of the pool's managed instance groups, one per
        zone. None when the pool has no instance group to read from.
        """
        np = self._get_node_pool(cluster_name, name)
        urls = list(np.instance_group_urls)
        if not urls:
            return None

        total = 0
        for url in urls:
            match = _INSTANCE_GROUP_URL_RE.search(url)
            if match is None:
                logger.warning(f"Unexpected instance group URL for node pool {name}: {url}")
                return None
            total += self._instance_group_target_size(**match.groupdict())
        return total

    @retry(**RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
    def _instance_group_target_size(self, project: str, zone: str, name: str) -> int:
        client = get_instance_group_managers_client()
        request = compute_v1.GetInstanceGroupManagerRequest(
            project=project, zone=zone, instance_group_manager=name
        )
        return int(client.get(request=request).target_size)

    @retry(**RETRY_CONFIG)  # type: ignore[call-overload, untyped-decorator]
    def get_kubeconfig(self, cluster_name: str) -> str:
        client = get_gke_client()
        request = container_v1.GetClusterRequest(name=self._cluster_path(cluster_name))
        cluster = client.get_cluster(request=request)

        context_name = f"gke_{self.project_id}_{self.location}_{cluster_name}"
        kubeconfig = {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [
                {
                    "name": context_name,
                    "cluster": {
                        "server": f"https://{cluster.endpoint}",
                        "certificate-authority-data": cluster.master_auth.cluster_ca_certificate,
                    },
                }
            ],
            "users": [
                {
                    "name": context_name,
                    "user": {
                        "exec": {
                            "apiVersion": "client.authentication.k8s.io/v1beta1",
                            "command": "gke-gcloud-auth-plugin",
                            "provideClusterInfo": True,
                        }
                    },
                }
            ],
            "contexts": [
                {
                    "name": context_name,
                    "context": {"cluster": context_name, "user": context_name},
                }
            ],
            "current-context": context_name,
        }
        # JSON is valid YAML, kubectl reads it as is
        return json.dumps(kubeconfig, indent=2)


class GKE(Kubernetes):
    """
    GKE cluster. The autoscaler is managed by Google, so there is no in-cluster
    deployment to suspend during worker upgrades.
    """

    kind = "gke"
    instance_types = GCP_INSTANCE_TYPES
    workers_version_keys = (CONTEXT_WORKERS_VERSION, "gke_node_version")

    def render_context(
        self, desired_states: list[NodePoolDesiredState], upgrade_timeout_in_min: int
    ) -> dict[str, Any]:
        context = super().render_context(desired_states, upgrade_timeout_in_min)
        context.update(
            {
                "gke_project_id": self.cluster.options.get("project_id"),
                "gke_location": self.region,
                "gke_node_version": self.version,
                "gke_release_channel": self.cluster.options.get("release_channel", "REGULAR"),
            }
        )
        return context
