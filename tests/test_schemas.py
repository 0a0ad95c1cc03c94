import uuid

import pytest

from kubelift.errors import (
    DuplicateNodePoolError,
    EventDetails,
    InvalidAdvancedSettingsError,
    InvalidPoolBoundsError,
    Stage,
)
from kubelift.schemas.cluster import ClusterAdvancedSettings, ClusterSpec, NodePoolSpec


def test_pool_bounds_are_checked_at_construction():
    with pytest.raises(InvalidPoolBoundsError):
        NodePoolSpec(name="nodegroup", min_nodes=5, max_nodes=2, instance_type="t3.large")


def test_pool_with_equal_bounds():
    pool = NodePoolSpec(name="nodegroup", min_nodes=2, max_nodes=2, instance_type="t3.large")
    assert pool.disk_size_in_gib == 20


def test_duplicate_pool_names(pool):
    with pytest.raises(DuplicateNodePoolError):
        ClusterSpec(
            id="z1234abcd",
            long_id=uuid.uuid4(),
            name="qa-cluster",
            version="1.28",
            region="us-east-2",
            node_pools=[pool, pool],
        )


@pytest.mark.parametrize(
    "settings",
    [
        {"upgrade_timeout_in_min": 0},
        {"upgrade_timeout_in_min": -10},
        {"pod_crashloop_restart_threshold": 0},
    ],
)
def test_invalid_advanced_settings(settings):
    with pytest.raises(InvalidAdvancedSettingsError):
        ClusterAdvancedSettings(**settings)


def test_cluster_defaults(cluster):
    assert cluster.options == {}
    assert cluster.advanced_settings.upgrade_timeout_in_min is None
    assert cluster.advanced_settings.pod_crashloop_restart_threshold == 3
    assert cluster.advanced_settings.delete_completed_jobs is True


def test_error_rendering():
    error = InvalidPoolBoundsError("min_nodes must be lower", underlying="5 > 2")
    error.with_details(
        EventDetails(cluster_id="z1", cluster_name="qa", stage=Stage.CREATE, provider="eks")
    )
    # details set where the error was raised win
    error.with_details(EventDetails(cluster_id="other", cluster_name="other", stage=Stage.DELETE))

    assert str(error) == (
        "[InvalidPoolBounds] min_nodes must be lower | cluster: eks/qa (z1) [Create] | cause: 5 > 2"
    )
