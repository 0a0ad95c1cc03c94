import base64
from collections.abc import Callable

from rich.markup import escape

from .collaborators import SecretStore
from .errors import ActionCancelledError, EngineError, Stage
from .logger import logger
from .metrics import StepLabel, StepName, StepRegistry, StepStatus
from .providers.base import Kubernetes
from .schemas.upgrade import UpgradeStatus


class LifecycleDispatcher:
    """
    Entry point for cluster lifecycle actions.

    Each action is timed as a ``Total`` step for the cluster, runs the
    provider routine, calls the matching error hook when it fails, and pushes
    a fresh kubeconfig to the secret store when it succeeds.
    """

    def __init__(
        self,
        provider: Kubernetes,
        registry: StepRegistry,
        secret_store: SecretStore | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.secret_store = secret_store

    def create(self) -> None:
        self._run(Stage.CREATE, self.provider.on_create, self.provider.on_create_error)

    def pause(self) -> None:
        self._run(Stage.PAUSE, self.provider.on_pause, self.provider.on_pause_error)

    def upgrade(self, status: UpgradeStatus) -> None:
        self._run(
            Stage.UPGRADE,
            lambda: self.provider.upgrade_with_status(status),
            self.provider.on_upgrade_error,
        )

    def delete(self) -> None:
        self._run(Stage.DELETE, self.provider.on_delete, self.provider.on_delete_error)

    def _run(
        self,
        stage: Stage,
        action: Callable[[], None],
        on_error: Callable[[], None],
    ) -> None:
        provider = self.provider
        event_details = provider.event_details(stage)

        with self.registry.start(
            provider.long_id, StepLabel.ENVIRONMENT, StepName.TOTAL
        ) as record:
            logger.info(f"{stage.value} {provider.kind} cluster {provider.name} ({provider.id})")
            try:
                action()
            except ActionCancelledError as e:
                e.with_details(event_details)
                logger.warning(
                    f"{stage.value} of cluster {provider.name} cancelled: {escape(str(e))}"
                )
                record.stop(StepStatus.CANCEL)
                raise
            except Exception as e:
                if isinstance(e, EngineError):
                    e.with_details(event_details)
                logger.error(
                    f"{stage.value} of cluster {provider.name} failed: {escape(str(e))}"
                )
                self._call_error_hook(stage, on_error)
                record.stop(StepStatus.ERROR)
                raise
            record.stop(StepStatus.SUCCESS)

        # the cluster and its kubeconfig are gone after a delete
        if stage is not Stage.DELETE:
            self._store_kubeconfig()

    def _call_error_hook(self, stage: Stage, on_error: Callable[[], None]) -> None:
        try:
            on_error()
        except Exception as hook_error:
            logger.error(
                f"{stage.value} error hook of cluster {self.provider.name} "
                f"failed: {escape(str(hook_error))}"
            )

    def _store_kubeconfig(self) -> None:
        if self.secret_store is None:
            return
        try:
            kubeconfig = self.provider.get_kubeconfig()
            if not kubeconfig:
                logger.warning(f"No kubeconfig available for cluster {self.provider.name}")
                return
            encoded = base64.b64encode(kubeconfig.encode()).decode()
            self.secret_store.store_kubeconfig(self.provider.id, encoded)
        except Exception as e:
            logger.warning(
                f"Couldn't store kubeconfig of cluster {self.provider.name}: "
                f"{escape(str(e))}"
            )
