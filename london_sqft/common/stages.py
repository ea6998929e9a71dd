"""Persistent per-stage status records for resumable runs."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from london_sqft.common.constants import STAGE_DEPENDENCIES, STAGES
from london_sqft.common.fs import read_json, write_json


class StageStatus(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


def downstream_stages(stage: str) -> list[str]:
    out: list[str] = []
    frontier = [stage]
    while frontier:
        current = frontier.pop()
        for candidate in STAGES:
            if current in STAGE_DEPENDENCIES[candidate] and candidate not in out:
                out.append(candidate)
                frontier.append(candidate)
    return [name for name in STAGES if name in out]


class StageTracker:
    """Stage status map backed by ``state/stages.json``.

    Every mutation is flushed with an atomic replace, so a crash never leaves a
    half-written status file and a stage only reads as completed after its
    artifact has been committed.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._records: dict[str, dict] = {}
        if path.exists():
            self._records = read_json(path).get("stages", {})

    @classmethod
    def for_data_dir(cls, data_dir: Path) -> "StageTracker":
        return cls(data_dir / "state" / "stages.json")

    def status(self, stage: str) -> StageStatus:
        record = self._records.get(stage)
        if not record:
            return StageStatus.NOT_STARTED
        return StageStatus(record["status"])

    def artifact(self, stage: str) -> Path | None:
        record = self._records.get(stage) or {}
        artifact = record.get("artifact")
        return Path(artifact) if artifact else None

    def is_complete(self, stage: str) -> bool:
        if self.status(stage) is not StageStatus.COMPLETED:
            return False
        artifact = self.artifact(stage)
        return artifact is not None and artifact.exists()

    def mark_running(self, stage: str, run_id: str) -> None:
        self._records[stage] = {"status": StageStatus.RUNNING.value, "run_id": run_id}
        self._flush()

    def mark_completed(self, stage: str, run_id: str, artifact: Path) -> None:
        self._records[stage] = {
            "status": StageStatus.COMPLETED.value,
            "run_id": run_id,
            "artifact": str(artifact),
        }
        self._flush()

    def reset(self, stage: str) -> None:
        self._records.pop(stage, None)
        self._flush()

    def invalidate_downstream(self, stage: str) -> list[str]:
        reset = [name for name in downstream_stages(stage) if name in self._records]
        for name in reset:
            self._records.pop(name)
        if reset:
            self._flush()
        return reset

    def snapshot(self) -> dict[str, str]:
        return {stage: self.status(stage).value for stage in STAGES}

    def _flush(self) -> None:
        write_json(self.path, {"stages": self._records})
