from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class ProjectDescriptor:
    package_id: str
    declared_version: str | None
    effective_version: str
    descriptor_path: Path

    @property
    def name(self) -> str:
        return self.descriptor_path.name

    @property
    def project_dir(self) -> Path:
        return self.descriptor_path.parent
