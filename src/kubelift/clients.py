from __future__ import annotations

from functools import lru_cache
from typing import Any

from google.cloud import compute_v1, container_v1

# Shared Client Registry (Lazy-loaded and cached)


@lru_cache(maxsize=1)
def get_gke_client() -> Any:
    return container_v1.ClusterManagerClient()


@lru_cache(maxsize=1)
def get_instance_group_managers_client() -> Any:
    return compute_v1.InstanceGroupManagersClient()
