"""Engine error hierarchy.

Every fatal error carries a ``Tag`` and, when known, the ``EventDetails`` of
the cluster and step it was raised for, so callers can render a diagnostic
without re-deriving state.
"""

from dataclasses import dataclass
from enum import Enum


class Stage(str, Enum):
    CREATE = "Create"
    PAUSE = "Pause"
    UPGRADE = "Upgrade"
    DELETE = "Delete"


@dataclass(frozen=True)
class EventDetails:
    cluster_id: str
    cluster_name: str
    stage: Stage
    provider: str = ""

    def __str__(self) -> str:
        prefix = f"{self.provider}/" if self.provider else ""
        return f"{prefix}{self.cluster_name} ({self.cluster_id}) [{self.stage.value}]"


class Tag(str, Enum):
    INVALID_POOL_BOUNDS = "InvalidPoolBounds"
    DUPLICATE_NODE_POOL = "DuplicateNodePool"
    INVALID_ADVANCED_SETTINGS = "InvalidAdvancedSettings"
    NOT_ALLOWED_INSTANCE_TYPE = "NotAllowedInstanceType"
    UNSUPPORTED_INSTANCE_TYPE = "UnsupportedInstanceType"
    INSTANCE_ARCHITECTURE_MISMATCH = "InstanceArchitectureMismatch"
    CANNOT_LIST_CLUSTERS = "CannotListClusters"
    CLUSTER_NOT_FOUND = "ClusterNotFound"
    NODE_POOL_NOT_FOUND = "NodePoolNotFound"
    ONE_NODE_POOL_MUST_BE_ACTIVE_AT_LEAST = "OneNodePoolMustBeActiveAtLeast"
    MISSING_NODE_POOL_INFORMATION = "MissingNodePoolInformation"
    NODE_POOL_DELETE_FAILED = "NodePoolDeleteFailed"
    IAC_APPLY_FAILED = "IaCApplyFailed"
    WORKLOAD_SCALE_FAILED = "WorkloadScaleFailed"
    WORKLOAD_CLEANUP_FAILED = "WorkloadCleanupFailed"
    NODE_NOT_READY_AFTER_UPGRADE = "NodeNotReadyAfterUpgrade"
    ACTION_CANCELLED = "ActionCancelled"


class EngineError(Exception):
    tag: Tag

    def __init__(
        self,
        message: str,
        event_details: EventDetails | None = None,
        underlying: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.event_details = event_details
        self.underlying = underlying

    def with_details(self, event_details: EventDetails) -> "EngineError":
        """Attaches event details if none were set where the error was raised."""
        if self.event_details is None:
            self.event_details = event_details
        return self

    def __str__(self) -> str:
        parts = [f"[{self.tag.value}] {self.message}"]
        if self.event_details is not None:
            parts.append(f"cluster: {self.event_details}")
        if self.underlying:
            parts.append(f"cause: {self.underlying}")
        return " | ".join(parts)


class InvalidPoolBoundsError(EngineError):
    tag = Tag.INVALID_POOL_BOUNDS


class DuplicateNodePoolError(EngineError):
    tag = Tag.DUPLICATE_NODE_POOL


class InvalidAdvancedSettingsError(EngineError):
    tag = Tag.INVALID_ADVANCED_SETTINGS


class NotAllowedInstanceTypeError(EngineError):
    tag = Tag.NOT_ALLOWED_INSTANCE_TYPE


class UnsupportedInstanceTypeError(EngineError):
    tag = Tag.UNSUPPORTED_INSTANCE_TYPE


class InstanceArchitectureMismatchError(EngineError):
    tag = Tag.INSTANCE_ARCHITECTURE_MISMATCH


class CannotListClustersError(EngineError):
    tag = Tag.CANNOT_LIST_CLUSTERS


class ClusterNotFoundError(EngineError):
    tag = Tag.CLUSTER_NOT_FOUND


class NodePoolNotFoundError(EngineError):
    tag = Tag.NODE_POOL_NOT_FOUND


class OneNodePoolMustBeActiveAtLeastError(EngineError):
    tag = Tag.ONE_NODE_POOL_MUST_BE_ACTIVE_AT_LEAST

    def __init__(
        self,
        message: str,
        pools_health: list[str] | None = None,
        event_details: EventDetails | None = None,
    ) -> None:
        self.pools_health = pools_health or []
        super().__init__(
            message,
            event_details=event_details,
            underlying="\n".join(self.pools_health) or None,
        )


class MissingNodePoolInformationError(EngineError):
    tag = Tag.MISSING_NODE_POOL_INFORMATION


class NodePoolDeleteError(EngineError):
    tag = Tag.NODE_POOL_DELETE_FAILED

    def __init__(
        self,
        message: str,
        pool_name: str | None = None,
        event_details: EventDetails | None = None,
        underlying: str | None = None,
    ) -> None:
        self.pool_name = pool_name
        super().__init__(message, event_details=event_details, underlying=underlying)


class IaCApplyFailedError(EngineError):
    tag = Tag.IAC_APPLY_FAILED


class WorkloadScaleFailedError(EngineError):
    tag = Tag.WORKLOAD_SCALE_FAILED


class WorkloadCleanupFailedError(EngineError):
    tag = Tag.WORKLOAD_CLEANUP_FAILED


class NodeNotReadyAfterUpgradeError(EngineError):
    tag = Tag.NODE_NOT_READY_AFTER_UPGRADE


class ActionCancelledError(EngineError):
    tag = Tag.ACTION_CANCELLED
