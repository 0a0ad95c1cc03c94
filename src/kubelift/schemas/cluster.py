from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors import (
    DuplicateNodePoolError,
    InvalidAdvancedSettingsError,
    InvalidPoolBoundsError,
)


class CpuArchitecture(str, Enum):
    AMD64 = "AMD64"
    ARM64 = "ARM64"


class NodePoolDeletionMode(str, Enum):
    ALL = "all"
    FAILED_ONLY = "failed_only"


class NodePoolSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    min_nodes: int = Field(ge=0)
    max_nodes: int = Field(ge=0)
    instance_type: str
    disk_size_in_gib: int = 20
    instance_architecture: CpuArchitecture = CpuArchitecture.AMD64

    @model_validator(mode="after")
    def _check_bounds(self) -> "NodePoolSpec":
        if self.min_nodes > self.max_nodes:
            raise InvalidPoolBoundsError(
                f"Node pool {self.name}: min_nodes ({self.min_nodes}) "
                f"must be lower or equal to max_nodes ({self.max_nodes})"
            )
        return self


class ClusterAdvancedSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    upgrade_timeout_in_min: int | None = Field(
        default=None, description="Overrides the computed worker upgrade timeout"
    )
    pod_crashloop_restart_threshold: int = 3
    delete_completed_jobs: bool = True

    @model_validator(mode="after")
    def _check_values(self) -> "ClusterAdvancedSettings":
        if self.upgrade_timeout_in_min is not None and self.upgrade_timeout_in_min <= 0:
            raise InvalidAdvancedSettingsError(
                f"upgrade_timeout_in_min must be positive, got {self.upgrade_timeout_in_min}"
            )
        if self.pod_crashloop_restart_threshold <= 0:
            raise InvalidAdvancedSettingsError(
                "pod_crashloop_restart_threshold must be positive, "
                f"got {self.pod_crashloop_restart_threshold}"
            )
        return self


class ClusterSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    long_id: UUID
    name: str
    version: str = Field(description="Target Kubernetes version (e.g., 1.28)")
    region: str
    zones: list[str] = Field(default_factory=list)
    node_pools: list[NodePoolSpec] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)
    advanced_settings: ClusterAdvancedSettings = Field(
        default_factory=ClusterAdvancedSettings
    )

    @model_validator(mode="after")
    def _check_unique_pools(self) -> "ClusterSpec":
        seen: set[str] = set()
        for pool in self.node_pools:
            if pool.name in seen:
                raise DuplicateNodePoolError(
                    f"Node pool {pool.name} is declared more than once in cluster {self.name}"
                )
            seen.add(pool.name)
        return self


class ActionKind(str, Enum):
    BOOTSTRAP = "Bootstrap"
    UPDATE = "Update"
    UPGRADE = "Upgrade"
    PAUSE = "Pause"
    DELETE = "Delete"
    RESUME = "Resume"


class ClusterAction(BaseModel):
    """
    Lifecycle action a node pool is reconciled for.
    current_nodes is the last count observed from the autoscaler, when known,
    and is only meaningful for Update, Upgrade and Resume.
    """

    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    current_nodes: int | None = None

    @classmethod
    def bootstrap(cls) -> "ClusterAction":
        return cls(kind=ActionKind.BOOTSTRAP)

    @classmethod
    def update(cls, current_nodes: int | None = None) -> "ClusterAction":
        return cls(kind=ActionKind.UPDATE, current_nodes=current_nodes)

    @classmethod
    def upgrade(cls, current_nodes: int | None = None) -> "ClusterAction":
        return cls(kind=ActionKind.UPGRADE, current_nodes=current_nodes)

    @classmethod
    def pause(cls) -> "ClusterAction":
        return cls(kind=ActionKind.PAUSE)

    @classmethod
    def delete(cls) -> "ClusterAction":
        return cls(kind=ActionKind.DELETE)

    @classmethod
    def resume(cls, current_nodes: int | None = None) -> "ClusterAction":
        return cls(kind=ActionKind.RESUME, current_nodes=current_nodes)
