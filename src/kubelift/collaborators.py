"""
Interfaces of the external systems the engine drives.

Implementations live outside the core (IaC backend, orchestrator API client,
secret store). The only built-in implementation is the GKE node pool client in
``providers.gke``.
"""

from collections.abc import Sequence
from typing import Any, Protocol

from .schemas.nodepool import DescribedNodePool
from .schemas.workloads import NodeSnapshot, PodSnapshot, WorkloadKind, WorkloadSnapshot


class IaCApplier(Protocol):
    def apply(
        self, context: dict[str, Any], dry_run: bool, credentials: dict[str, str]
    ) -> None:
        """Plans and applies the rendered context. Raises on failure."""
        ...


class WorkloadInspector(Protocol):
    def list_pods(self, selector: str | None = None) -> list[PodSnapshot]: ...

    def list_deployments(self, selector: str | None = None) -> list[WorkloadSnapshot]: ...

    def list_statefulsets(self, selector: str | None = None) -> list[WorkloadSnapshot]: ...

    def list_nodes(self) -> list[NodeSnapshot]: ...

    def scale(self, kind: WorkloadKind, namespace: str, name: str, replicas: int) -> None: ...

    def delete_crashlooping_pods(self, threshold: int) -> None: ...

    def delete_completed_jobs(self) -> None: ...


class NodePoolClient(Protocol):
    def list_clusters(self) -> list[str]: ...

    def list_node_pools(self, cluster_name: str) -> list[str]: ...

    def describe_node_pools(
        self, cluster_name: str, names: Sequence[str]
    ) -> list[DescribedNodePool | None]: ...

    def delete_node_pool(self, cluster_name: str, name: str) -> None: ...

    def current_node_count(self, cluster_name: str, name: str) -> int | None: ...

    def get_kubeconfig(self, cluster_name: str) -> str: ...


class SecretStore(Protocol):
    def store_kubeconfig(self, cluster_id: str, kubeconfig_b64: str) -> None: ...
