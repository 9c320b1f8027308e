"""Dagster asset, job and schedule generation and command execution."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from dataweave.conventions import ProjectLayout, resolve_destination
from dataweave.exceptions import InvalidArgumentError
from dataweave.fileio import write_text
from dataweave.index_file import register_symbol
from dataweave.models import ArtifactDescriptor, ArtifactKind, is_python_identifier
from dataweave.process import run_tool
from dataweave.renderer import Renderer

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000


def _check_identifiers(kind: str, names: Sequence[str]) -> List[str]:
    names = list(names)
    for name in names:
        if not is_python_identifier(name):
            raise InvalidArgumentError(f'{kind} name must be a valid Python identifier: {name!r}')
    return names


class DagsterManager:
    """Generates Dagster definitions and wraps the Dagster CLI."""

    def __init__(self, layout: ProjectLayout, renderer: Optional[Renderer] = None):
        self.layout = layout
        self.renderer = renderer or Renderer()

    def _write(self, descriptor: ArtifactDescriptor) -> Path:
        destination = resolve_destination(descriptor, self.layout)
        write_text(destination.path, self.renderer.render(descriptor))
        register_symbol(destination.directory, descriptor.name)
        logger.info(f'Created {descriptor.kind.value} {descriptor.name} at {destination.path}')
        return destination.path

    def generate_asset(
        self,
        name: str,
        description: Optional[str] = None,
        dependencies: Optional[Sequence[str]] = None,
        code: Optional[str] = None,
        partitions: Optional[str] = None,
        schedule: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        compute_kind: Optional[str] = None,
        io_manager: Optional[str] = None,
    ) -> Path:
        """Write an asset module and register it in ``assets/__init__.py``.

        Args:
            name: Asset (and module) name
            description: Asset description
            dependencies: Upstream asset names, passed in as DataFrame parameters
            code: Asset source; a placeholder asset is generated when omitted
            partitions: Start date for daily partitions
            schedule: Cron expression; also generates a schedule for the asset
            tags: Asset tags
            compute_kind: Compute kind shown in the Dagster UI (e.g. pandas)
            io_manager: IO manager resource key

        Returns:
            Path of the written asset module

        Raises:
            InvalidArgumentError: If a name is not a valid Python identifier
        """
        descriptor = ArtifactDescriptor(
            name=name,
            kind=ArtifactKind.ASSET,
            parameters={
                'description': description,
                'dependencies': _check_identifiers('Dependency', dependencies or []),
                'code': code,
                'partitions': partitions,
                'tags': list(tags or []),
                'compute_kind': compute_kind,
                'io_manager': io_manager,
            },
        )
        path = self._write(descriptor)

        if schedule:
            self.generate_schedule(name, schedule, is_job=False)
        return path

    def generate_job(
        self,
        name: str,
        description: Optional[str] = None,
        assets: Optional[Sequence[str]] = None,
        schedule: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> Path:
        """Write a job module and register it in ``jobs/__init__.py``."""
        descriptor = ArtifactDescriptor(
            name=name,
            kind=ArtifactKind.JOB,
            parameters={
                'description': description,
                'assets': _check_identifiers('Asset', assets or []),
                'tags': list(tags or []),
            },
        )
        path = self._write(descriptor)

        if schedule:
            self.generate_schedule(name, schedule, is_job=True)
        return path

    def generate_dbt_asset(self, model_name: str) -> Path:
        """Write a ``dbt_<model>`` asset wrapping a dbt model."""
        descriptor = ArtifactDescriptor(
            name=f'dbt_{model_name}',
            kind=ArtifactKind.ASSET,
            parameters={'dbt_model': model_name},
        )
        return self._write(descriptor)

    def generate_schedule(self, target: str, cron: str, is_job: bool = False) -> Path:
        """Write ``<target>_schedule`` and register it in ``schedules/__init__.py``."""
        if not cron or not cron.strip():
            raise InvalidArgumentError('Schedule cron expression must not be empty')

        descriptor = ArtifactDescriptor(
            name=f'{target}_schedule',
            kind=ArtifactKind.SCHEDULED_TRIGGER,
            parameters={'target': target, 'cron': cron.strip(), 'target_is_job': is_job},
        )
        return self._write(descriptor)

    def run_asset(self, asset_name: str) -> None:
        self._execute(['asset', 'materialize', '--select', asset_name])

    def run_job(self, job_name: str) -> None:
        self._execute(['job', 'execute', '--job', job_name])

    def start_dagster(self, port: int = DEFAULT_PORT) -> None:
        self._execute(['dev', '--port', str(port)])

    def validate_pipeline(self) -> None:
        self._execute(['pipeline', 'validate'])

    def _execute(self, args: List[str]) -> None:
        run_tool('dagster', args, cwd=self.layout.project_root)
