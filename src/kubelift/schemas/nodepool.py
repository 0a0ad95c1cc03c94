from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .cluster import CpuArchitecture


class NodePoolStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CREATING = "CREATING"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    CREATE_FAILED = "CREATE_FAILED"
    DELETE_FAILED = "DELETE_FAILED"
    DEGRADED = "DEGRADED"


FAILED_NODE_POOL_STATUSES = frozenset(
    {
        NodePoolStatus.CREATE_FAILED,
        NodePoolStatus.DELETE_FAILED,
        NodePoolStatus.DEGRADED,
    }
)


class HealthIssue(BaseModel):
    code: str
    message: str | None = None


class NodePoolHealth(BaseModel):
    issues: list[HealthIssue] = Field(default_factory=list)


class DescribedNodePool(BaseModel):
    """Node pool snapshot as described by the cloud provider."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    status: NodePoolStatus | None = None
    health: NodePoolHealth | None = None


class NodePoolDesiredState(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    id: str | None = None
    min_nodes: int
    max_nodes: int
    desired_size: int
    enable_desired_size: bool = Field(
        description="Force the desired size instead of leaving it to the autoscaler"
    )
    instance_type: str
    disk_size_in_gib: int
    instance_architecture: CpuArchitecture = CpuArchitecture.AMD64

    @property
    def force_update(self) -> bool:
        return self.enable_desired_size
