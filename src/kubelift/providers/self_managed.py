from ..logger import logger
from ..schemas.upgrade import UpgradeStatus
from .base import Kubernetes


class SelfManaged(Kubernetes):
    """
    Cluster whose infrastructure is owned by the user. The engine only keeps
    its kubeconfig up to date; every lifecycle hook succeeds without action.
    """

    kind = "self-managed"

    def __init__(self, *args, kubeconfig: str | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._kubeconfig = kubeconfig

    def get_kubeconfig(self) -> str | None:
        return self._kubeconfig

    def on_create(self) -> None:
        logger.info(f"Cluster {self.name} is self-managed, nothing to create.")

    def on_create_error(self) -> None:
        pass

    def on_pause(self) -> None:
        logger.info(f"Cluster {self.name} is self-managed, nothing to pause.")

    def on_pause_error(self) -> None:
        pass

    def upgrade_with_status(self, status: UpgradeStatus) -> None:
        logger.info(f"Cluster {self.name} is self-managed, upgrade is left to its owner.")

    def on_upgrade_error(self) -> None:
        pass

    def on_delete(self) -> None:
        logger.info(f"Cluster {self.name} is self-managed, nothing to delete.")

    def on_delete_error(self) -> None:
        pass
