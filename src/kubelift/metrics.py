"""
Step timing registry.

Every started step is finalized exactly once: explicitly through ``stop`` or,
when the owning ``StepRecordHandle`` is closed first, with ``StepStatus.NOT_SET``.
Finished records are published to a ``MessageSink``.
"""

import threading
import time
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from types import TracebackType
from typing import Protocol
from uuid import UUID

import humanize

from .logger import logger


class StepName(str, Enum):
    TOTAL = "Total"
    PROVISION_BUILDER = "ProvisionBuilder"
    REGISTRY_CREATE_REPOSITORY = "RegistryCreateRepository"
    GIT_CLONE = "GitClone"
    BUILD = "Build"
    DEPLOYMENT = "Deployment"


class StepLabel(str, Enum):
    SERVICE = "Service"
    ENVIRONMENT = "Environment"


class StepStatus(str, Enum):
    SUCCESS = "Success"
    ERROR = "Error"
    CANCEL = "Cancel"
    SKIP = "Skip"
    NOT_SET = "NotSet"


@dataclass
class StepRecord:
    step_name: StepName
    label: StepLabel
    id: UUID
    start_time: float = field(default_factory=time.monotonic)
    duration: timedelta | None = None
    status: StepStatus | None = None


class MessageSink(Protocol):
    def send(self, record: StepRecord) -> None: ...


class LoggingMessageSink:
    """Default sink: writes finished records to the package logger."""

    def send(self, record: StepRecord) -> None:
        took = humanize.precisedelta(record.duration) if record.duration else "n/a"
        status = record.status.value if record.status else "n/a"
        logger.info(
            f"Step {record.step_name.value} ({record.label.value}) for {record.id} "
            f"finished with status {status} in {took}"
        )


class CollectingMessageSink:
    """Keeps every published record in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[StepRecord] = []

    def send(self, record: StepRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> list[StepRecord]:
        with self._lock:
            return list(self._records)


class StepRecordHandle:
    """
    Scoped token returned by StepRegistry.start.
    Use it as a context manager (or call close) so the record is finalized
    with NotSet when the caller never stopped it explicitly.
    """

    def __init__(self, registry: "StepRegistry", id: UUID, step_name: StepName):
        self.id = id
        self.step_name = step_name
        self._registry = registry
        self._closed = False

    def is_stopped(self) -> bool:
        return self._registry.is_stopped(self.id, self.step_name)

    def stop(self, status: StepStatus) -> None:
        self._registry.stop(self.id, self.step_name, status)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self.is_stopped():
            self.stop(StepStatus.NOT_SET)

    def __enter__(self) -> "StepRecordHandle":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class StepRegistry:
    """Concurrency-safe map of entity id -> step name -> StepRecord."""

    def __init__(self, message_sink: MessageSink | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[UUID, dict[StepName, StepRecord]] = {}
        self._sink: MessageSink = message_sink or LoggingMessageSink()

    def start(self, id: UUID, label: StepLabel, step_name: StepName) -> StepRecordHandle:
        logger.debug(f"start record step {step_name.value} for item {id}")

        with self._lock:
            steps = self._records.setdefault(id, {})
            if step_name in steps:
                # last start wins; the previous record is lost
                logger.error(f"Step {step_name.value} already recorded for item {id}")
            steps[step_name] = StepRecord(step_name=step_name, label=label, id=id)

        return StepRecordHandle(self, id, step_name)

    def stop(self, id: UUID, step_name: StepName, status: StepStatus) -> None:
        logger.debug(f"stop record step {step_name.value} for item {id}")

        with self._lock:
            record = self._records.get(id, {}).get(step_name)
            if record is None:
                logger.error(
                    f"Stop record step {step_name.value} for item {id} "
                    "that has not been started"
                )
                return
            if record.duration is not None:
                logger.error(
                    f"Stop record step {step_name.value} for item {id} "
                    "that is already stopped"
                )
                return
            record.duration = timedelta(seconds=time.monotonic() - record.start_time)
            record.status = status
            finished = replace(record)

        self._sink.send(finished)

    def is_stopped(self, id: UUID, step_name: StepName) -> bool:
        with self._lock:
            record = self._records.get(id, {}).get(step_name)
            return record is not None and record.duration is not None

    def get_records(self, id: UUID) -> list[StepRecord]:
        logger.debug(f"get step durations for item {id}")

        with self._lock:
            return [
                replace(record)
                for record in self._records.get(id, {}).values()
                if record.duration is not None
            ]

    def clear(self) -> None:
        logger.debug("clear the registry")
        with self._lock:
            self._records.clear()
