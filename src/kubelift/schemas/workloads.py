from enum import Enum

from pydantic import BaseModel, Field


class WorkloadKind(str, Enum):
    DEPLOYMENT = "Deployment"
    STATEFULSET = "StatefulSet"


class PodSnapshot(BaseModel):
    name: str
    namespace: str
    termination_grace_period_seconds: int | None = None


class WorkloadSnapshot(BaseModel):
    kind: WorkloadKind
    name: str
    namespace: str
    replicas: int = 0
    ready_replicas: int = 0


class NodeSnapshot(BaseModel):
    name: str
    kubelet_version: str = Field(description="e.g., v1.28.3-eks-4f4795d")
