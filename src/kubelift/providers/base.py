"""
Capability interface shared by every cluster provider.

Providers differ in their instance-type catalogue, the extra keys they add to
the provisioning context and the in-cluster autoscaler they manage. The
lifecycle routines themselves (create, pause, upgrade, delete) are shared.
"""

from collections.abc import Callable
from typing import Any
from uuid import UUID

from rich.markup import escape

from ..collaborators import IaCApplier, NodePoolClient, WorkloadInspector
from ..config import EngineSettings, get_settings
from ..context import build_provisioning_context
from ..core import (
    CONTEXT_DESTROY,
    CONTEXT_ENABLE_AUTOSCALER,
    CONTEXT_PAUSED,
    CONTEXT_WORKERS_VERSION,
)
from ..errors import CannotListClustersError, EventDetails, IaCApplyFailedError, Stage
from ..instances import InstanceTypeCatalogue, validate_node_pools
from ..logger import logger
from ..nodepools import observed_node_counts, reconcile_all
from ..recovery import delete_failed_or_all
from ..schemas.cluster import (
    ClusterAction,
    ClusterSpec,
    CpuArchitecture,
    NodePoolDeletionMode,
)
from ..schemas.nodepool import NodePoolDesiredState
from ..schemas.upgrade import UpgradeStatus
from ..upgrade import AutoscalerRef, UpgradeOrchestrator


class Kubernetes:
    kind: str = "kubernetes"
    instance_types: InstanceTypeCatalogue | None = None
    autoscaler: AutoscalerRef | None = None
    workers_version_keys: tuple[str, ...] = (CONTEXT_WORKERS_VERSION,)

    def __init__(
        self,
        cluster: ClusterSpec,
        applier: IaCApplier,
        node_pool_client: NodePoolClient,
        workload_inspector: WorkloadInspector,
        credentials: dict[str, str] | None = None,
        should_cancel: Callable[[], bool] | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.cluster = cluster
        self.applier = applier
        self.node_pool_client = node_pool_client
        self.workload_inspector = workload_inspector
        self.credentials = credentials or {}
        self.should_cancel = should_cancel
        self.settings = settings or get_settings()
        self._first_install = False

    # Identity

    @property
    def id(self) -> str:
        return self.cluster.id

    @property
    def long_id(self) -> UUID:
        return self.cluster.long_id

    @property
    def name(self) -> str:
        return self.cluster.name

    @property
    def version(self) -> str:
        return self.cluster.version

    @property
    def region(self) -> str:
        return self.cluster.region

    @property
    def zones(self) -> list[str]:
        return list(self.cluster.zones)

    def cpu_architectures(self) -> list[CpuArchitecture]:
        return [p.instance_architecture for p in self.cluster.node_pools]

    def event_details(self, stage: Stage) -> EventDetails:
        return EventDetails(
            cluster_id=self.id, cluster_name=self.name, stage=stage, provider=self.kind
        )

    def credentials_environment_variables(self) -> dict[str, str]:
        return dict(self.credentials)

    def validate(self) -> None:
        """Fails fast on pool specs the provider can't run, before any external call."""
        if self.instance_types is not None:
            try:
                validate_node_pools(self.cluster.node_pools, self.instance_types)
            except Exception as e:
                logger.error(
                    f"Invalid node pools for cluster {self.name}: {escape(str(e))}"
                )
                raise

    def render_context(
        self, desired_states: list[NodePoolDesiredState], upgrade_timeout_in_min: int
    ) -> dict[str, Any]:
        return build_provisioning_context(
            self.cluster, desired_states, upgrade_timeout_in_min
        )

    def get_kubeconfig(self) -> str | None:
        return self.node_pool_client.get_kubeconfig(self.name)

    # Shared routines

    def cluster_exists(self, event_details: EventDetails) -> bool:
        try:
            return self.name in self.node_pool_client.list_clusters()
        except Exception as e:
            raise CannotListClustersError(
                "Couldn't list clusters from cloud provider",
                event_details=event_details,
                underlying=str(e),
            ) from e

    def current_sizes(self) -> dict[str, int | None]:
        return observed_node_counts(
            self.node_pool_client, self.name, self.cluster.node_pools
        )

    def apply(self, context: dict[str, Any], event_details: EventDetails) -> None:
        try:
            self.applier.apply(
                context, self.settings.dry_run, self.credentials_environment_variables()
            )
        except Exception as e:
            raise IaCApplyFailedError(
                f"Infrastructure apply failed for cluster {self.name}",
                event_details=event_details,
                underlying=str(e),
            ) from e

    def on_create(self) -> None:
        # a failure before the existence check must not look like a first install
        self._first_install = False
        event_details = self.event_details(Stage.CREATE)
        logger.info(f"Preparing {self.kind} cluster {self.name} deployment.")
        self.validate()

        self._first_install = not self.cluster_exists(event_details)
        if self._first_install:
            make_action = lambda _: ClusterAction.bootstrap()  # noqa: E731
            sizes: dict[str, int | None] = {}
        else:
            delete_failed_or_all(
                self.node_pool_client,
                self.name,
                is_first_install=False,
                mode=NodePoolDeletionMode.FAILED_ONLY,
                event_details=event_details,
                should_cancel=self.should_cancel,
            )
            sizes = self.current_sizes()
            # a paused cluster has no running pool left
            if self.cluster.node_pools and all(s == 0 for s in sizes.values()):
                logger.info(f"Cluster {self.name} is paused, resuming it.")
                make_action = ClusterAction.resume
            else:
                make_action = ClusterAction.update

        desired_states = reconcile_all(make_action, self.cluster.node_pools, sizes)
        context = self.render_context(
            desired_states, self.settings.default_upgrade_timeout_in_min
        )
        self.apply(context, event_details)
        logger.info(f"Kubernetes cluster {self.name} successfully deployed.")

    def on_create_error(self) -> None:
        event_details = self.event_details(Stage.CREATE)
        logger.warning(f"{self.kind} cluster {self.name} creation failed.")
        if not self._first_install or not self.cluster_exists(event_details):
            return
        # nothing runs on a cluster that never finished installing: start clean
        delete_failed_or_all(
            self.node_pool_client,
            self.name,
            is_first_install=True,
            mode=NodePoolDeletionMode.ALL,
            event_details=event_details,
            should_cancel=self.should_cancel,
        )

    def on_pause(self) -> None:
        event_details = self.event_details(Stage.PAUSE)
        logger.info(f"Preparing {self.kind} cluster {self.name} pause.")
        desired_states = reconcile_all(
            lambda _: ClusterAction.pause(), self.cluster.node_pools, {}
        )
        context = self.render_context(
            desired_states, self.settings.default_upgrade_timeout_in_min
        )
        context[CONTEXT_ENABLE_AUTOSCALER] = False
        context[CONTEXT_PAUSED] = True
        self.apply(context, event_details)
        logger.info(f"Kubernetes cluster {self.name} successfully paused.")

    def on_pause_error(self) -> None:
        logger.warning(f"{self.kind} cluster {self.name} pause failed.")

    def upgrade_with_status(self, status: UpgradeStatus) -> None:
        self.validate()
        orchestrator = UpgradeOrchestrator(
            self.cluster,
            self.applier,
            self.workload_inspector,
            node_pool_client=self.node_pool_client,
            credentials=self.credentials_environment_variables(),
            autoscaler=self.autoscaler,
            render_context=self.render_context,
            workers_version_keys=self.workers_version_keys,
            event_details=self.event_details(Stage.UPGRADE),
            should_cancel=self.should_cancel,
            settings=self.settings,
        )
        orchestrator.run(status)

    def on_upgrade_error(self) -> None:
        logger.warning(f"{self.kind} cluster {self.name} upgrade failed.")

    def on_delete(self) -> None:
        event_details = self.event_details(Stage.DELETE)
        logger.info(f"Preparing {self.kind} cluster {self.name} deletion.")
        desired_states = reconcile_all(
            lambda _: ClusterAction.delete(), self.cluster.node_pools, {}
        )
        context = self.render_context(
            desired_states, self.settings.default_upgrade_timeout_in_min
        )
        context[CONTEXT_DESTROY] = True
        self.apply(context, event_details)
        logger.info(f"Kubernetes cluster {self.name} successfully deleted.")

    def on_delete_error(self) -> None:
        logger.warning(f"{self.kind} cluster {self.name} deletion failed.")
