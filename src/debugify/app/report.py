from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from debugify import __version__

ProjectStatus = Literal["replaced", "no_cache_entry", "no_match", "version_failed", "build_failed", "replace_failed"]

FAILED_STATUSES: frozenset[str] = frozenset({"version_failed", "build_failed", "replace_failed"})


@dataclass(frozen=True, slots=True)
class ProjectRunRecord:
    descriptor_path: Path
    package_id: str
    version: str
    status: ProjectStatus
    replaced: int = 0
    elapsed_s: float = 0.0
    error: str | None = None


@dataclass(slots=True)
class DebugReport:
    records: list[ProjectRunRecord] = field(default_factory=list)

    def add(self, record: ProjectRunRecord) -> None:
        self.records.append(record)

    def by_status(self, status: ProjectStatus) -> list[ProjectRunRecord]:
        return [r for r in self.records if r.status == status]

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.records if r.status in FAILED_STATUSES)

    @property
    def cache_misses(self) -> int:
        return len(self.by_status("no_cache_entry"))

    @property
    def replaced(self) -> int:
        return len(self.by_status("replaced"))


def write_run_report(report: DebugReport, out_path: Path) -> Path:
    out_path = Path(out_path)
    payload = []
    for r in report.records:
        payload.append(
            {
                "descriptor_path": str(r.descriptor_path),
                "package_id": r.package_id,
                "version": r.version,
                "status": r.status,
                "replaced": r.replaced,
                "elapsed_s": r.elapsed_s,
                "error": r.error,
            }
        )
    summary = {"total": report.total, "failed": report.failed, "cache_misses": report.cache_misses}
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        json.dumps({"app": {"name": "debugify", "version": __version__}, "summary": summary, "records": payload}, indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return out_path
