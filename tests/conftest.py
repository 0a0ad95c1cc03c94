import uuid

import pytest

from kubelift.config import EngineSettings
from kubelift.schemas.cluster import ClusterSpec, NodePoolSpec


@pytest.fixture
def settings():
    # No waiting between worker version checks
    return EngineSettings(worker_poll_interval_seconds=0)


@pytest.fixture
def pool():
    return NodePoolSpec(
        name="nodegroup", min_nodes=3, max_nodes=10, instance_type="t3.large"
    )


@pytest.fixture
def cluster(pool):
    return ClusterSpec(
        id="z1234abcd",
        long_id=uuid.uuid4(),
        name="qa-cluster",
        version="1.28",
        region="us-east-2",
        zones=["us-east-2a", "us-east-2b", "us-east-2c"],
        node_pools=[pool],
    )
