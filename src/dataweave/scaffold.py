"""Creating a new dataweave project on disk."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from dataweave.config import (
    DEFAULT_PROJECT_VERSION,
    DagsterSettings,
    DataweaveConfig,
    DbtSettings,
    SupabaseSettings,
    save_config,
)
from dataweave.conventions import ProjectLayout
from dataweave.exceptions import InvalidArgumentError
from dataweave.fileio import write_text
from dataweave.models import ColumnRecord, MetadataDocument
from dataweave.renderer import Renderer
from dataweave.schema_yaml import save_document, upsert_model
from dataweave.templates import (
    DAGSTER_DEFINITIONS,
    DAGSTER_PYPROJECT_TEMPLATE,
    DAGSTER_SAMPLE_ASSETS,
    ENV_EXAMPLE_TEMPLATE,
    README_TEMPLATE,
    SAMPLE_STAGING_MODEL,
    SUPABASE_CONFIG,
    SUPABASE_INITIAL_MIGRATION,
)

logger = logging.getLogger(__name__)

PROJECT_DIRECTORIES = (
    'data/dbt/models/staging',
    'data/dbt/models/intermediate',
    'data/dbt/models/marts',
    'data/dbt/macros',
    'data/dbt/tests',
    'data/dagster/assets',
    'data/dagster/jobs',
    'data/dagster/sensors',
    'data/dagster/schedules',
    'data/assets',
    'supabase/migrations',
    'supabase/functions',
    '.dataweave',
    'config',
    'scripts',
)

IDENTITY_TESTS = ['unique', 'not_null']


def _dump_yaml(data: Dict[str, Any]) -> str:
    return yaml.dump(data, default_flow_style=False, sort_keys=False)


def dbt_project_config(name: str, version: str) -> Dict[str, Any]:
    return {
        'name': name,
        'version': version,
        'config-version': 2,
        'profile': 'dataweave',
        'model-paths': ['models'],
        'analysis-paths': ['analysis'],
        'test-paths': ['tests'],
        'seed-paths': ['seeds'],
        'macro-paths': ['macros'],
        'snapshot-paths': ['snapshots'],
        'target-path': 'target',
        'clean-targets': ['target', 'dbt_packages'],
        'models': {
            name: {
                'staging': {'+materialized': 'view'},
                'intermediate': {'+materialized': 'view'},
                'marts': {'+materialized': 'table'},
            }
        },
    }


def dbt_profiles_config() -> Dict[str, Any]:
    """Profiles with a local dev target and an environment-driven prod target."""
    common = {'schema': 'public', 'threads': 4, 'keepalives_idle': 0}
    return {
        'dataweave': {
            'outputs': {
                'dev': {
                    'type': 'postgres',
                    'host': 'localhost',
                    'user': 'postgres',
                    'password': 'postgres',
                    'port': 5432,
                    'dbname': 'dataweave_dev',
                    **common,
                },
                'prod': {
                    'type': 'postgres',
                    'host': "{{ env_var('DATABASE_HOST') }}",
                    'user': "{{ env_var('DATABASE_USER') }}",
                    'password': "{{ env_var('DATABASE_PASSWORD') }}",
                    'port': "{{ env_var('DATABASE_PORT') | as_number }}",
                    'dbname': "{{ env_var('DATABASE_NAME') }}",
                    **common,
                },
            },
            'target': 'dev',
        }
    }


def _identity_columns() -> List[ColumnRecord]:
    return [
        ColumnRecord(name='id', description='Primary key', tests=list(IDENTITY_TESTS)),
        ColumnRecord(name='email', description='User email address', tests=list(IDENTITY_TESTS)),
    ]


def dbt_sources_config() -> Dict[str, Any]:
    columns = [{'name': c.name, 'description': c.description, 'tests': c.tests} for c in _identity_columns()]
    return {
        'version': 2,
        'sources': [
            {
                'name': 'raw',
                'description': 'Raw data from various sources',
                'tables': [{'name': 'users', 'description': 'Raw user data', 'columns': columns}],
            }
        ],
    }


class ProjectScaffolder:
    """Lays out a new project with dbt, Dagster and Supabase starter files."""

    def __init__(
        self,
        name: str,
        target_dir: Path,
        include_dbt: bool = True,
        include_dagster: bool = True,
        include_supabase: bool = True,
        version: str = DEFAULT_PROJECT_VERSION,
        renderer: Optional[Renderer] = None,
    ):
        if not name or not name.strip():
            raise InvalidArgumentError('Project name must not be empty')
        self.name = name
        self.target_dir = Path(target_dir)
        self.include_dbt = include_dbt
        self.include_dagster = include_dagster
        self.include_supabase = include_supabase
        self.version = version
        self.renderer = renderer or Renderer()
        self.layout = ProjectLayout.for_root(self.target_dir)

    def scaffold(self) -> Path:
        """Create the project.

        Returns:
            The project root

        Raises:
            InvalidArgumentError: If the target directory already exists
        """
        if self.target_dir.exists():
            raise InvalidArgumentError(f'Directory {self.target_dir} already exists')

        logger.info(f'Scaffolding dataweave project: {self.name}')
        self.create_directories()
        self.write_config_files()
        if self.include_dbt:
            self.write_dbt_files()
        if self.include_dagster:
            self.write_dagster_files()
        if self.include_supabase:
            self.write_supabase_files()
        write_text(self.target_dir / 'README.md', self.renderer.render_template(README_TEMPLATE, name=self.name))

        logger.info(f'Successfully scaffolded project in {self.target_dir}')
        return self.target_dir

    def create_directories(self) -> None:
        for directory in PROJECT_DIRECTORIES:
            (self.target_dir / directory).mkdir(parents=True, exist_ok=True)
        logger.debug(f'Created directory structure under {self.target_dir}')

    def write_config_files(self) -> None:
        config = DataweaveConfig(
            name=self.name,
            version=self.version,
            dbt=DbtSettings(enabled=self.include_dbt),
            dagster=DagsterSettings(enabled=self.include_dagster),
            supabase=SupabaseSettings(enabled=self.include_supabase),
        )
        save_config(self.layout.config_path, config)
        write_text(
            self.target_dir / '.env.example',
            self.renderer.render_template(ENV_EXAMPLE_TEMPLATE, target_dir=str(self.target_dir)),
        )

    def write_dbt_files(self) -> None:
        layout = self.layout
        write_text(layout.dbt_dir / 'dbt_project.yml', _dump_yaml(dbt_project_config(self.name, self.version)))
        write_text(layout.profiles_dir / 'profiles.yml', _dump_yaml(dbt_profiles_config()))
        write_text(layout.models_dir / 'sources.yml', _dump_yaml(dbt_sources_config()))

        staging_dir = layout.models_dir / 'staging'
        write_text(staging_dir / 'stg_users.sql', SAMPLE_STAGING_MODEL)

        document = MetadataDocument()
        upsert_model(document, 'stg_users', description='Staged user data with basic cleaning', columns=_identity_columns())
        save_document(staging_dir / 'schema.yml', document)

    def write_dagster_files(self) -> None:
        layout = self.layout
        write_text(layout.dagster_dir / '__init__.py', '')
        write_text(layout.dagster_dir / 'definitions.py', DAGSTER_DEFINITIONS)
        write_text(layout.assets_dir / '__init__.py', DAGSTER_SAMPLE_ASSETS)
        write_text(
            self.target_dir / 'pyproject.toml',
            self.renderer.render_template(DAGSTER_PYPROJECT_TEMPLATE, name=self.name),
        )

    def write_supabase_files(self) -> None:
        write_text(self.target_dir / 'supabase' / 'config.toml', SUPABASE_CONFIG)
        write_text(self.target_dir / 'supabase' / 'migrations' / '001_initial_schema.sql', SUPABASE_INITIAL_MIGRATION)
