"""dbt model generation and command execution."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from dataweave.conventions import ModelDirectory, ProjectLayout, resolve_destination
from dataweave.exceptions import InvalidArgumentError, NotFoundError, ParseAmbiguousError
from dataweave.fileio import read_text, write_text
from dataweave.models import ArtifactDescriptor, ArtifactKind, ColumnRecord
from dataweave.process import run_tool
from dataweave.renderer import Renderer
from dataweave.schema_yaml import load_document, save_document, upsert_model

logger = logging.getLogger(__name__)

MATERIALIZATIONS = ('table', 'view', 'incremental', 'ephemeral')
SCHEMA_FILE_NAME = 'schema.yml'
SOURCES_FILE_NAME = 'sources.yml'
DOCS_PORT = 8001


class DbtManager:
    """Generates dbt models and wraps the dbt CLI."""

    def __init__(self, layout: ProjectLayout, renderer: Optional[Renderer] = None, lenient_schema: bool = False):
        """Initialize manager.

        Args:
            layout: Paths of the dataweave project
            renderer: Template renderer (default: a new Renderer)
            lenient_schema: Skip unsupported schema.yml content instead of failing
        """
        self.layout = layout
        self.renderer = renderer or Renderer()
        self.lenient_schema = lenient_schema

    def generate_model(
        self,
        name: str,
        sql: Optional[str] = None,
        description: Optional[str] = None,
        materialized: str = 'view',
        columns: Optional[Sequence[ColumnRecord]] = None,
        tests: Optional[Sequence[str]] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> Path:
        """Write a model file and register it in its directory's schema.yml.

        Args:
            name: Model name; its prefix picks the directory (stg_, int_, fct_/dim_)
            sql: Model SQL; a placeholder query is generated when omitted
            description: Model description for schema.yml
            materialized: Materialization strategy
            columns: Documented columns for schema.yml
            tests: Model-level tests for schema.yml
            tags: dbt tags for the config header

        Returns:
            Path of the written model file

        Raises:
            InvalidArgumentError: If the name or materialization is invalid
            ParseAmbiguousError: If the existing schema.yml is outside the supported dialect
        """
        if materialized not in MATERIALIZATIONS:
            raise InvalidArgumentError(
                f"Invalid materialization '{materialized}', expected one of: {', '.join(MATERIALIZATIONS)}"
            )

        descriptor = ArtifactDescriptor(
            name=name,
            kind=ArtifactKind.MODEL,
            parameters={'sql': sql, 'materialized': materialized, 'tags': list(tags or [])},
        )
        destination = resolve_destination(descriptor, self.layout)

        write_text(destination.path, self.renderer.render(descriptor))
        logger.info(f'Created model {name} at {destination.path}')

        self.update_schema(destination.directory, name, description, columns, tests)
        return destination.path

    def update_schema(
        self,
        model_dir: Path,
        model_name: str,
        description: Optional[str] = None,
        columns: Optional[Sequence[ColumnRecord]] = None,
        tests: Optional[Sequence[str]] = None,
    ) -> Path:
        """Add or update ``model_name`` in ``model_dir/schema.yml``."""
        schema_path = model_dir / SCHEMA_FILE_NAME

        try:
            document = load_document(schema_path, strict=True)
        except ParseAmbiguousError as e:
            if not self.lenient_schema:
                raise
            logger.warning(f'Failed to parse existing {schema_path} strictly ({e}), skipping unsupported content')
            document = load_document(schema_path, strict=False)

        upsert_model(document, model_name, description=description, columns=columns, tests=tests)
        save_document(schema_path, document)
        logger.info(f'Updated {schema_path} with {model_name}')
        return schema_path

    def find_model(self, name: str) -> Path:
        """Locate ``<name>.sql`` in the model directories.

        Raises:
            NotFoundError: If no such model exists
        """
        candidates = [self.layout.models_dir / directory.value / f'{name}.sql' for directory in ModelDirectory]
        candidates.append(self.layout.models_dir / f'{name}.sql')
        for path in candidates:
            if path.exists():
                return path

        matches = sorted(self.layout.models_dir.rglob(f'{name}.sql')) if self.layout.models_dir.exists() else []
        if matches:
            return matches[0]
        raise NotFoundError(f'DBT model not found: {name}')

    def list_models(self) -> List[str]:
        """Names of all models in the project, sorted."""
        if not self.layout.models_dir.exists():
            return []
        return sorted(path.stem for path in self.layout.models_dir.rglob('*.sql'))

    def run_model(self, model_name: Optional[str] = None) -> None:
        self._execute(['run'], model_name)

    def test_model(self, model_name: Optional[str] = None) -> None:
        self._execute(['test'], model_name)

    def compile_model(self, model_name: Optional[str] = None) -> None:
        self._execute(['compile'], model_name)

    def generate_docs(self, port: int = DOCS_PORT) -> None:
        """Generate the dbt docs site and serve it (blocks until the server exits)."""
        self._execute(['docs', 'generate'])
        self._execute(['docs', 'serve', '--port', str(port)])

    def introspect_database(self) -> Optional[str]:
        """Check the connection and return the sources configuration, if any."""
        self._execute(['debug'])

        sources_path = self.layout.models_dir / SOURCES_FILE_NAME
        content = read_text(sources_path)
        if content is None:
            logger.warning(f'No {SOURCES_FILE_NAME} found in {self.layout.models_dir}')
        return content

    def _execute(self, args: List[str], model_name: Optional[str] = None) -> None:
        if model_name:
            args = args + ['--select', model_name]
        run_tool(
            'dbt',
            args,
            cwd=self.layout.dbt_dir,
            env={'DBT_PROFILES_DIR': str(self.layout.profiles_dir)},
        )
