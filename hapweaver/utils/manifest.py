"""
Stage manifests for HapWeaver pipelines.

Each stage records what it produced in ``manifest.json`` inside its output
directory so the next stage can pick up its inputs by role.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

MANIFEST_FILE = 'manifest.json'

# Artifact roles shared between stages
ROLE_CORRECTED_READS = 'corrected_reads'
ROLE_DRAFT_ASSEMBLY = 'draft_assembly'
ROLE_HAPLOTYPE_1 = 'haplotype_1'
ROLE_HAPLOTYPE_2 = 'haplotype_2'
ROLE_MERGED_SHORT_READS = 'merged_short_reads'
ROLE_ANNOTATION_1 = 'annotation_1'
ROLE_ANNOTATION_2 = 'annotation_2'


def haplotype_role(hap: int) -> str:
    return ROLE_HAPLOTYPE_1 if hap == 1 else ROLE_HAPLOTYPE_2


class ManifestError(Exception):
    """Raised when a manifest is missing, unreadable or lacks a role."""
    pass


@dataclass
class StageManifest:
    """
    Record of one stage run.

    Attributes:
        stage: Stage name
        parameters: Resolved parameters
        artifacts: Produced artifact paths by role
        exit_codes: Exit codes by label ('stage', or 'haplotype_1' / 'haplotype_2' / 'overall')
        timestamp: ISO timestamp of the run
    """
    stage: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    artifacts: Dict[str, str] = field(default_factory=dict)
    exit_codes: Dict[str, int] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def add_artifact(self, role: str, path: Union[str, Path]):
        self.artifacts[role] = str(Path(path).resolve())

    def artifact(self, role: str) -> Path:
        """
        Path of the artifact recorded under ``role``.

        Raises:
            ManifestError: If the manifest has no such role
        """
        if role not in self.artifacts:
            raise ManifestError(f"Manifest for stage '{self.stage}' has no '{role}' artifact")
        return Path(self.artifacts[role])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stage': self.stage,
            'timestamp': self.timestamp,
            'parameters': {k: _jsonable(v) for k, v in self.parameters.items()},
            'artifacts': dict(self.artifacts),
            'exit_codes': dict(self.exit_codes),
        }

    def write(self, output_dir: Union[str, Path], filename: str = MANIFEST_FILE) -> Path:
        """Write the manifest into ``output_dir`` and return its path."""
        manifest_path = Path(output_dir) / filename
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(manifest_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logging.getLogger(__name__).info(f"Manifest written: {manifest_path}")
        return manifest_path

    @classmethod
    def load(cls, path: Union[str, Path], filename: str = MANIFEST_FILE) -> 'StageManifest':
        """
        Load a manifest from a file, or from ``filename`` in a directory.

        Raises:
            ManifestError: If the file is missing or not a manifest
        """
        path = Path(path)
        if path.is_dir():
            path = path / filename
        if not path.is_file():
            raise ManifestError(f"Manifest not found: {path}")

        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid manifest {path}: {e}")

        if not isinstance(data, dict) or 'stage' not in data:
            raise ManifestError(f"Invalid manifest {path}: missing 'stage'")

        return cls(
            stage=data['stage'],
            parameters=data.get('parameters', {}),
            artifacts=data.get('artifacts', {}),
            exit_codes=data.get('exit_codes', {}),
            timestamp=data.get('timestamp', ''),
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def resolve_input(explicit: Optional[str], manifest: Optional[StageManifest], role: str) -> Optional[str]:
    """Explicit flag value if given, else the manifest's artifact for ``role``."""
    if explicit:
        return explicit
    if manifest is None:
        return None
    return str(manifest.artifact(role))
