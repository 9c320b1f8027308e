"""Naming conventions and project layout for dataweave projects."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from dataweave.models import ArtifactDescriptor, ArtifactKind, Destination


class ModelDirectory(str, Enum):
    """Sub-directories of the dbt models directory."""

    STAGING = 'staging'
    INTERMEDIATE = 'intermediate'
    MARTS = 'marts'


# Checked in order, first match wins
MODEL_PREFIXES = (
    ('stg_', ModelDirectory.STAGING),
    ('int_', ModelDirectory.INTERMEDIATE),
    ('fct_', ModelDirectory.MARTS),
    ('dim_', ModelDirectory.MARTS),
)

DEFAULT_MODEL_DIRECTORY = ModelDirectory.STAGING


def resolve_model_directory(name: str) -> ModelDirectory:
    """Pick the models sub-directory for a model name.

    Args:
        name: Model name (e.g. 'stg_users', 'fct_orders')

    Returns:
        The matching ModelDirectory; staging for unrecognised names
    """
    for prefix, directory in MODEL_PREFIXES:
        if name.startswith(prefix):
            return directory
    return DEFAULT_MODEL_DIRECTORY


@dataclass(frozen=True)
class ProjectLayout:
    """Paths of a dataweave project."""

    project_root: Path
    dbt_dir: Path
    models_dir: Path
    profiles_dir: Path
    dagster_dir: Path
    assets_dir: Path
    jobs_dir: Path
    schedules_dir: Path

    @classmethod
    def for_root(cls, project_root: Optional[Path] = None) -> 'ProjectLayout':
        """Build the conventional layout rooted at ``project_root`` (default: cwd)."""
        if project_root is None:
            project_root = Path.cwd()
        project_root = Path(project_root).resolve()
        dbt_dir = project_root / 'data' / 'dbt'
        dagster_dir = project_root / 'data' / 'dagster'
        return cls(
            project_root=project_root,
            dbt_dir=dbt_dir,
            models_dir=dbt_dir / 'models',
            profiles_dir=project_root / 'config',
            dagster_dir=dagster_dir,
            assets_dir=dagster_dir / 'assets',
            jobs_dir=dagster_dir / 'jobs',
            schedules_dir=dagster_dir / 'schedules',
        )

    @property
    def config_path(self) -> Path:
        return self.project_root / '.dataweave' / 'config.json'


def resolve_destination(descriptor: ArtifactDescriptor, layout: ProjectLayout) -> Destination:
    """Map a descriptor to the file it should be written to."""
    if descriptor.kind is ArtifactKind.MODEL:
        directory = layout.models_dir / resolve_model_directory(descriptor.name).value
        return Destination(directory, f'{descriptor.name}.sql')
    if descriptor.kind is ArtifactKind.ASSET:
        return Destination(layout.assets_dir, f'{descriptor.name}.py')
    if descriptor.kind is ArtifactKind.JOB:
        return Destination(layout.jobs_dir, f'{descriptor.name}.py')
    return Destination(layout.schedules_dir, f'{descriptor.name}.py')
