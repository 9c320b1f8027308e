"""Dataweave - AI-assisted scaffolding for dbt, Dagster and Supabase projects."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version('dataweave')
except PackageNotFoundError:
    __version__ = '0.0.0'

from dataweave.dagster import DagsterManager  # noqa: E402
from dataweave.dbt import DbtManager  # noqa: E402
from dataweave.renderer import Renderer, render  # noqa: E402
from dataweave.scaffold import ProjectScaffolder  # noqa: E402

__all__ = ['DagsterManager', 'DbtManager', 'ProjectScaffolder', 'Renderer', 'render', '__version__']
