"""
Two-phase cluster upgrade: control plane first, then workers.

Masters and workers are never upgraded in the same apply. Before the worker
apply, workloads with no ready replica are scaled down, crash-looping pods and
completed jobs are removed, and the cluster autoscaler is suspended. The
autoscaler is restored on every exit path of the worker phase, including a
failed apply and a worker readiness timeout.
"""

import re
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

import humanize
from rich.markup import escape
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

from .collaborators import IaCApplier, NodePoolClient, WorkloadInspector
from .config import EngineSettings, get_settings
from .context import build_provisioning_context
from .core import (
    AUTOSCALER_ENABLED_REPLICAS,
    CONTEXT_ENABLE_AUTOSCALER,
    CONTEXT_MASTER_VERSION,
    CONTEXT_WORKERS_VERSION,
)
from .errors import (
    ActionCancelledError,
    EventDetails,
    IaCApplyFailedError,
    NodeNotReadyAfterUpgradeError,
    WorkloadCleanupFailedError,
    WorkloadScaleFailedError,
)
from .logger import logger
from .nodepools import observed_node_counts, reconcile_all
from .schemas.cluster import ClusterAction, ClusterSpec
from .schemas.nodepool import NodePoolDesiredState
from .schemas.upgrade import NodesType, UpgradeStatus
from .schemas.workloads import PodSnapshot, WorkloadKind, WorkloadSnapshot

ContextRenderer = Callable[[list[NodePoolDesiredState], int], dict[str, Any]]


class UpgradeState(str, Enum):
    IDLE = "Idle"
    MASTERS_UPGRADING = "MastersUpgrading"
    WORKERS_PREPARING = "WorkersPreparing"
    WORKERS_UPGRADING = "WorkersUpgrading"
    DONE = "Done"


@dataclass(frozen=True)
class AutoscalerRef:
    namespace: str
    name: str
    kind: WorkloadKind = WorkloadKind.DEPLOYMENT


def define_upgrade_timeout(
    pods: list[PodSnapshot],
    default_timeout_in_min: int = 60,
    max_node_drain_in_min: int = 15,
) -> tuple[int, str | None]:
    """
    Worker upgrade timeout in minutes, and an explanation when it was raised.

    Draining a node waits for each pod's termination grace period, so pods
    whose grace period exceeds the max drain duration stretch the timeout to
    twice the longest grace period.
    """
    max_grace_seconds = 0
    slow_pods = []
    for pod in pods:
        grace = pod.termination_grace_period_seconds or 0
        max_grace_seconds = max(max_grace_seconds, grace)
        if grace > max_node_drain_in_min * 60:
            slow_pods.append(f"{pod.name} [{pod.namespace}] ({grace} seconds)")

    if not slow_pods:
        return default_timeout_in_min, None

    timeout = max(default_timeout_in_min, (max_grace_seconds // 60) * 2)
    message = (
        f"Kubernetes workers timeout will be adjusted to {timeout} minutes, because "
        f"some pods have terminationGracePeriodSeconds too high. Pods: {', '.join(slow_pods)}"
    )
    return timeout, message


_VERSION_RE = re.compile(r"v?(\d+)\.(\d+)")


def versions_match(kubelet_version: str, requested_version: str) -> bool:
    """Compares major.minor, ignoring patch and distribution suffixes."""
    current = _VERSION_RE.match(kubelet_version.strip())
    wanted = _VERSION_RE.match(requested_version.strip())
    if current is None or wanted is None:
        return False
    return current.groups() == wanted.groups()


@contextmanager
def suspended_autoscaler(
    inspector: WorkloadInspector,
    autoscaler: AutoscalerRef | None,
    event_details: EventDetails | None = None,
) -> Iterator[None]:
    """
    Scales the autoscaler to 0 for the duration of the block and always scales
    it back. A failing restore is logged; it never masks the block's outcome.
    """
    if autoscaler is None:
        yield
        return

    logger.info("Set cluster autoscaler to: `disable`.")
    try:
        inspector.scale(autoscaler.kind, autoscaler.namespace, autoscaler.name, 0)
    except Exception as e:
        raise WorkloadScaleFailedError(
            f"Couldn't scale {autoscaler.namespace}/{autoscaler.name} to 0 replicas",
            event_details=event_details,
            underlying=str(e),
        ) from e

    try:
        yield
    finally:
        logger.info("Set cluster autoscaler to: `enable`.")
        try:
            inspector.scale(
                autoscaler.kind,
                autoscaler.namespace,
                autoscaler.name,
                AUTOSCALER_ENABLED_REPLICAS,
            )
        except Exception as e:
            logger.error(
                f"Couldn't restore cluster autoscaler "
                f"{autoscaler.namespace}/{autoscaler.name}: {escape(str(e))}"
            )


class UpgradeOrchestrator:
    def __init__(
        self,
        cluster: ClusterSpec,
        applier: IaCApplier,
        inspector: WorkloadInspector,
        node_pool_client: NodePoolClient | None = None,
        credentials: dict[str, str] | None = None,
        autoscaler: AutoscalerRef | None = None,
        render_context: ContextRenderer | None = None,
        workers_version_keys: tuple[str, ...] = (CONTEXT_WORKERS_VERSION,),
        event_details: EventDetails | None = None,
        should_cancel: Callable[[], bool] | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.cluster = cluster
        self.applier = applier
        self.inspector = inspector
        self.node_pool_client = node_pool_client
        self.credentials = credentials or {}
        self.autoscaler = autoscaler
        self.render_context = render_context or (
            lambda states, timeout: build_provisioning_context(cluster, states, timeout)
        )
        self.workers_version_keys = workers_version_keys
        self.event_details = event_details
        self.should_cancel = should_cancel
        self.settings = settings or get_settings()
        self.state = UpgradeState.IDLE

    def run(self, status: UpgradeStatus) -> None:
        self.state = UpgradeState.IDLE
        logger.info(f"Start preparing cluster {self.cluster.name} upgrade process")

        desired_states = reconcile_all(
            ClusterAction.upgrade, self.cluster.node_pools, self._current_sizes()
        )
        timeout_in_min = self.upgrade_timeout()
        context = self.render_context(desired_states, timeout_in_min)

        if status.required_upgrade_on is None:
            logger.info(
                "No Kubernetes upgrade required, masters and workers are already up to date."
            )
            self.state = UpgradeState.DONE
            return

        if status.required_upgrade_on is NodesType.MASTERS:
            self.state = UpgradeState.MASTERS_UPGRADING
            logger.info("Start upgrading process for master nodes.")
            masters_context = dict(context)
            masters_context[CONTEXT_MASTER_VERSION] = status.requested_version
            # workers stay on the deployed masters version, upgraded in the next apply
            self._set_workers_version(masters_context, status.deployed_masters_version)
            self._apply(masters_context, "master nodes")
            logger.info("Kubernetes master nodes have been successfully upgraded.")
        else:
            logger.info(
                "No need to perform Kubernetes master upgrade, they are already up to date."
            )

        self.state = UpgradeState.WORKERS_PREPARING
        logger.info("Preparing workers nodes for upgrade for Kubernetes cluster.")
        workers_context = dict(context)
        workers_context[CONTEXT_MASTER_VERSION] = status.requested_version
        workers_context[CONTEXT_ENABLE_AUTOSCALER] = False
        self._set_workers_version(workers_context, status.requested_version)

        logger.info("Checking clusters content health")
        self.quarantine_workloads()
        self._cleanup_workloads()

        self.state = UpgradeState.WORKERS_UPGRADING
        with suspended_autoscaler(self.inspector, self.autoscaler, self.event_details):
            logger.info("Starting Kubernetes worker nodes upgrade")
            self._apply(workers_context, "worker nodes")
            self._wait_for_workers(status.requested_version, timeout_in_min)

        self.state = UpgradeState.DONE
        logger.info("Kubernetes nodes have been successfully upgraded")

    def upgrade_timeout(self) -> int:
        override = self.cluster.advanced_settings.upgrade_timeout_in_min
        if override is not None:
            return override

        default = self.settings.default_upgrade_timeout_in_min
        try:
            pods = self.inspector.list_pods()
        except Exception as e:
            logger.warning(
                f"Couldn't list pods to compute upgrade timeout: {escape(str(e))}"
            )
            return default

        timeout, message = define_upgrade_timeout(
            pods, default, self.settings.max_node_drain_timeout_in_min
        )
        if message:
            logger.info(escape(message))
        return timeout

    def quarantine_workloads(self) -> list[WorkloadSnapshot]:
        """
        Scales to 0 every deployment and statefulset with replicas but none ready.
        Returns the workloads that were scaled down.
        """
        try:
            workloads = self.inspector.list_deployments() + self.inspector.list_statefulsets()
        except Exception as e:
            raise WorkloadScaleFailedError(
                "Couldn't list deployments and statefulsets",
                event_details=self.event_details,
                underlying=str(e),
            ) from e

        quarantined = []
        for workload in workloads:
            self._check_cancelled("workload quarantine")
            ident = f"{workload.kind.value} {workload.name}/{workload.namespace}"
            ready = f"{workload.ready_replicas}/{workload.replicas}"

            # replicas == 0: already disabled; ready_replicas > 0: healthy enough
            if workload.replicas > 0 and workload.ready_replicas == 0:
                logger.info(
                    f"{ident} has {ready} replicas ready. "
                    "Scaling to 0 replicas to avoid upgrade failure."
                )
                try:
                    self.inspector.scale(workload.kind, workload.namespace, workload.name, 0)
                except Exception as e:
                    raise WorkloadScaleFailedError(
                        f"Couldn't scale {ident} to 0 replicas",
                        event_details=self.event_details,
                        underlying=str(e),
                    ) from e
                quarantined.append(workload)
            else:
                logger.debug(f"{ident} has {ready} replicas ready. No action needed.")

        return quarantined

    def _cleanup_workloads(self) -> None:
        settings = self.cluster.advanced_settings
        try:
            self.inspector.delete_crashlooping_pods(settings.pod_crashloop_restart_threshold)
        except Exception as e:
            raise WorkloadCleanupFailedError(
                "Couldn't delete crash-looping pods",
                event_details=self.event_details,
                underlying=str(e),
            ) from e

        if not settings.delete_completed_jobs:
            return
        try:
            self.inspector.delete_completed_jobs()
        except Exception as e:
            raise WorkloadCleanupFailedError(
                "Couldn't delete completed jobs",
                event_details=self.event_details,
                underlying=str(e),
            ) from e

    def _current_sizes(self) -> dict[str, int | None]:
        if self.node_pool_client is None:
            return {}
        return observed_node_counts(
            self.node_pool_client, self.cluster.name, self.cluster.node_pools
        )

    def _set_workers_version(self, context: dict[str, Any], version: str) -> None:
        for key in self.workers_version_keys:
            context[key] = version

    def _apply(self, context: dict[str, Any], target: str) -> None:
        logger.info(f"Upgrading Kubernetes {target}.")
        try:
            self.applier.apply(context, self.settings.dry_run, self.credentials)
        except Exception as e:
            raise IaCApplyFailedError(
                f"Infrastructure apply failed while upgrading {target}",
                event_details=self.event_details,
                underlying=str(e),
            ) from e

    def _workers_upgraded(self, requested_version: str) -> bool:
        nodes = self.inspector.list_nodes()
        pending = [
            n.name for n in nodes if not versions_match(n.kubelet_version, requested_version)
        ]
        if pending:
            logger.info(
                f"Waiting for {len(pending)} node(s) to run {requested_version}: "
                f"{', '.join(pending)}"
            )
        return bool(nodes) and not pending

    def _wait_for_workers(self, requested_version: str, timeout_in_min: int) -> None:
        logger.info(
            f"Waiting up to {humanize.precisedelta(timedelta(minutes=timeout_in_min))} "
            f"for workers to report {requested_version}"
        )
        retrying = Retrying(
            stop=stop_after_delay(timeout_in_min * 60),
            wait=wait_fixed(self.settings.worker_poll_interval_seconds),
            retry=retry_if_result(lambda upgraded: upgraded is False)
            | retry_if_exception_type(Exception),
        )
        try:
            retrying(self._workers_upgraded, requested_version)
        except RetryError as e:
            last = e.last_attempt
            cause = str(last.exception()) if last.failed else "nodes still on previous version"
            raise NodeNotReadyAfterUpgradeError(
                f"Worker nodes did not report version {requested_version} "
                f"within {timeout_in_min} minutes",
                event_details=self.event_details,
                underlying=cause,
            ) from e

    def _check_cancelled(self, step: str) -> None:
        if self.should_cancel is not None and self.should_cancel():
            raise ActionCancelledError(
                f"Upgrade cancelled during {step}", event_details=self.event_details
            )
