from dataclasses import dataclass, field

from .errors import (
    InstanceArchitectureMismatchError,
    NotAllowedInstanceTypeError,
    UnsupportedInstanceTypeError,
)
from .schemas.cluster import CpuArchitecture, NodePoolSpec


@dataclass(frozen=True)
class InstanceTypeCatalogue:
    """Instance types a provider knows about and the subset usable as cluster nodes."""

    provider: str
    known: frozenset[str]
    not_cluster_allowed: frozenset[str] = field(default_factory=frozenset)
    arm: frozenset[str] = field(default_factory=frozenset)

    def is_known(self, instance_type: str) -> bool:
        return instance_type.lower() in self.known

    def is_cluster_allowed(self, instance_type: str) -> bool:
        t = instance_type.lower()
        return t in self.known and t not in self.not_cluster_allowed

    def architecture(self, instance_type: str) -> CpuArchitecture:
        if instance_type.lower() in self.arm:
            return CpuArchitecture.ARM64
        return CpuArchitecture.AMD64


def _aws_sizes(families: list[str], sizes: list[str]) -> set[str]:
    return {f"{family}.{size}" for family in families for size in sizes}


_AWS_SMALL = _aws_sizes(["t3", "t3a", "t4g"], ["nano", "micro", "small"])
_AWS_ARM = _aws_sizes(
    ["t4g"], ["nano", "micro", "small", "medium", "large", "xlarge", "2xlarge"]
) | _aws_sizes(
    ["m6g", "c6g", "r6g", "m7g", "c7g"],
    ["medium", "large", "xlarge", "2xlarge", "4xlarge", "8xlarge"],
)

AWS_INSTANCE_TYPES = InstanceTypeCatalogue(
    provider="aws",
    known=frozenset(
        _AWS_SMALL
        | _aws_sizes(["t3", "t3a", "t4g"], ["medium", "large", "xlarge", "2xlarge"])
        | _aws_sizes(
            ["m5", "m5a", "m6i", "m6a", "c5", "c5a", "c6i", "r5", "r6i"],
            ["large", "xlarge", "2xlarge", "4xlarge", "8xlarge", "12xlarge", "16xlarge"],
        )
        | _AWS_ARM
        | _aws_sizes(["g4dn"], ["xlarge", "2xlarge", "4xlarge", "8xlarge"])
    ),
    not_cluster_allowed=frozenset(_AWS_SMALL),
    arm=frozenset(_AWS_ARM),
)

_GCP_SHARED_CORE = {"e2-micro", "e2-small", "f1-micro", "g1-small"}
_GCP_ARM = {f"t2a-standard-{n}" for n in (1, 2, 4, 8, 16, 32, 48)}

GCP_INSTANCE_TYPES = InstanceTypeCatalogue(
    provider="gcp",
    known=frozenset(
        _GCP_SHARED_CORE
        | {"e2-medium"}
        | {
            f"e2-{kind}-{n}"
            for kind in ("standard", "highmem", "highcpu")
            for n in (2, 4, 8, 16, 32)
        }
        | {
            f"n2-{kind}-{n}"
            for kind in ("standard", "highmem", "highcpu")
            for n in (2, 4, 8, 16, 32, 48)
        }
        | {f"n2d-standard-{n}" for n in (2, 4, 8, 16, 32, 48)}
        | {f"c3-standard-{n}" for n in (4, 8, 22, 44)}
        | {f"n1-standard-{n}" for n in (1, 2, 4, 8, 16)}
        | _GCP_ARM
    ),
    not_cluster_allowed=frozenset(_GCP_SHARED_CORE),
    arm=frozenset(_GCP_ARM),
)


def validate_node_pools(
    pools: list[NodePoolSpec], catalogue: InstanceTypeCatalogue
) -> None:
    """
    Fails on the first pool whose instance type is unknown, not cluster-allowed,
    or runs another CPU architecture than the one declared for the pool.
    """
    for pool in pools:
        if not catalogue.is_known(pool.instance_type):
            raise UnsupportedInstanceTypeError(
                f"Instance type {pool.instance_type} of node pool {pool.name} "
                f"is not supported on {catalogue.provider}"
            )
        if not catalogue.is_cluster_allowed(pool.instance_type):
            raise NotAllowedInstanceTypeError(
                f"Instance type {pool.instance_type} of node pool {pool.name} "
                "is too small to run a Kubernetes cluster node"
            )
        architecture = catalogue.architecture(pool.instance_type)
        if architecture is not pool.instance_architecture:
            raise InstanceArchitectureMismatchError(
                f"Instance type {pool.instance_type} of node pool {pool.name} is "
                f"{architecture.value}, but the pool is declared "
                f"{pool.instance_architecture.value}"
            )
