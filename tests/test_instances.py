import pytest

from kubelift.errors import (
    InstanceArchitectureMismatchError,
    NotAllowedInstanceTypeError,
    UnsupportedInstanceTypeError,
)
from kubelift.instances import AWS_INSTANCE_TYPES, GCP_INSTANCE_TYPES, validate_node_pools
from kubelift.schemas.cluster import CpuArchitecture, NodePoolSpec


def pools(*instance_types):
    return [
        NodePoolSpec(name=f"pool-{i}", min_nodes=1, max_nodes=3, instance_type=t)
        for i, t in enumerate(instance_types)
    ]


@pytest.mark.parametrize(
    "catalogue, instance_type, allowed",
    [
        (AWS_INSTANCE_TYPES, "t3.small", False),
        (AWS_INSTANCE_TYPES, "t3a.small", False),
        (AWS_INSTANCE_TYPES, "t3.medium", True),
        (AWS_INSTANCE_TYPES, "t3a.medium", True),
        (AWS_INSTANCE_TYPES, "T3.LARGE", True),
        (AWS_INSTANCE_TYPES, "t3a.large", True),
        (GCP_INSTANCE_TYPES, "e2-micro", False),
        (GCP_INSTANCE_TYPES, "e2-medium", True),
        (GCP_INSTANCE_TYPES, "f1-micro", False),
        (GCP_INSTANCE_TYPES, "t2a-standard-4", True),
    ],
)
def test_is_cluster_allowed(catalogue, instance_type, allowed):
    assert catalogue.is_known(instance_type)
    assert catalogue.is_cluster_allowed(instance_type) is allowed


def test_unknown_instance_type():
    assert not AWS_INSTANCE_TYPES.is_known("t1000.terminator")
    assert not AWS_INSTANCE_TYPES.is_cluster_allowed("t1000.terminator")


def test_architecture():
    assert AWS_INSTANCE_TYPES.architecture("m6g.large") is CpuArchitecture.ARM64
    assert AWS_INSTANCE_TYPES.architecture("m5.large") is CpuArchitecture.AMD64
    assert GCP_INSTANCE_TYPES.architecture("t2a-standard-4") is CpuArchitecture.ARM64


def test_validate_node_pools():
    validate_node_pools(pools("t3.medium", "m5.xlarge"), AWS_INSTANCE_TYPES)

    with pytest.raises(NotAllowedInstanceTypeError):
        validate_node_pools(pools("t3.medium", "t3.small"), AWS_INSTANCE_TYPES)

    with pytest.raises(UnsupportedInstanceTypeError) as exc_info:
        validate_node_pools(pools("t1000.terminator"), AWS_INSTANCE_TYPES)
    assert "t1000.terminator" in str(exc_info.value)


def test_validate_node_pools_architecture():
    [pool] = pools("m6g.large")

    with pytest.raises(InstanceArchitectureMismatchError) as exc_info:
        validate_node_pools([pool], AWS_INSTANCE_TYPES)
    assert "ARM64" in str(exc_info.value)

    arm_pool = pool.model_copy(update={"instance_architecture": CpuArchitecture.ARM64})
    validate_node_pools([arm_pool], AWS_INSTANCE_TYPES)

    amd_declared_arm = NodePoolSpec(
        name="gpu",
        min_nodes=1,
        max_nodes=2,
        instance_type="g4dn.xlarge",
        instance_architecture=CpuArchitecture.ARM64,
    )
    with pytest.raises(InstanceArchitectureMismatchError):
        validate_node_pools([amd_declared_arm], AWS_INSTANCE_TYPES)
