from typing import Any

from ..core import AUTOSCALER_NAMESPACE, CONTEXT_WORKERS_VERSION, EKS_AUTOSCALER_DEPLOYMENT
from ..instances import AWS_INSTANCE_TYPES
from ..schemas.nodepool import NodePoolDesiredState
from ..upgrade import AutoscalerRef
from .base import Kubernetes


class EKS(Kubernetes):
    """EKS cluster, upgraded masters then workers with the AWS autoscaler suspended."""

    kind = "eks"
    instance_types = AWS_INSTANCE_TYPES
    autoscaler = AutoscalerRef(namespace=AUTOSCALER_NAMESPACE, name=EKS_AUTOSCALER_DEPLOYMENT)
    workers_version_keys = (CONTEXT_WORKERS_VERSION, "eks_workers_version")

    def render_context(
        self, desired_states: list[NodePoolDesiredState], upgrade_timeout_in_min: int
    ) -> dict[str, Any]:
        context = super().render_context(desired_states, upgrade_timeout_in_min)
        options = self.cluster.options
        context.update(
            {
                "eks_cluster_name": self.name,
                "eks_workers_version": self.version,
                "aws_region": self.region,
                "vpc_cidr_block": options.get("vpc_cidr_block", "10.0.0.0/16"),
                "user_network_config": options.get("user_network_config"),
            }
        )
        return context
