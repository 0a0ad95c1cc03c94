from tenacity import stop_after_attempt, wait_exponential

# Shared retry configuration for read-only cloud calls
# usage: @retry(**RETRY_CONFIG)
# Mutating calls (apply, scale, delete) are never retried.
RETRY_CONFIG = {
    "stop": stop_after_attempt(3),
    "wait": wait_exponential(multiplier=1, min=4, max=10),
    "reraise": True,
}

# Cluster autoscaler deployment managed by the engine on EKS-like clusters
AUTOSCALER_NAMESPACE = "kube-system"
EKS_AUTOSCALER_DEPLOYMENT = "cluster-autoscaler-aws-cluster-autoscaler"

# Replica count the autoscaler is restored to after a worker upgrade
AUTOSCALER_ENABLED_REPLICAS = 1

# Context keys shared by every provider template
CONTEXT_MASTER_VERSION = "kubernetes_master_version"
CONTEXT_WORKERS_VERSION = "kubernetes_workers_version"
CONTEXT_ENABLE_AUTOSCALER = "enable_cluster_autoscaler"
CONTEXT_UPGRADE_TIMEOUT = "cluster_upgrade_timeout_in_min"
CONTEXT_PAUSED = "paused"
CONTEXT_DESTROY = "destroy"
