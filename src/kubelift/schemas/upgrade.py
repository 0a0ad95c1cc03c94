from enum import Enum

from pydantic import BaseModel, ConfigDict


class NodesType(str, Enum):
    MASTERS = "Masters"
    WORKERS = "Workers"


class UpgradeStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    required_upgrade_on: NodesType | None = None
    requested_version: str
    deployed_masters_version: str
    deployed_workers_version: str | None = None
