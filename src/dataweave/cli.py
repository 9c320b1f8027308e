"""CLI for dataweave."""

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from dataweave import __version__
from dataweave.ai import AIEngine, GenerationContext, TableSchema
from dataweave.config import DEFAULT_PROJECT_VERSION, DataweaveConfig, load_config
from dataweave.conventions import ProjectLayout, resolve_model_directory
from dataweave.dagster import DEFAULT_PORT, DagsterManager
from dataweave.dbt import DOCS_PORT, DbtManager
from dataweave.exceptions import DataweaveError, ExternalProcessError, NotFoundError, ProjectNotFoundError
from dataweave.fileio import read_text
from dataweave.scaffold import ProjectScaffolder

app = typer.Typer(
    name='dataweave',
    help='AI-assisted CLI for modern data pipelines with DBT, Dagster, and Supabase integration',
    no_args_is_help=True,
)
dbt_app = typer.Typer(help='Generate and run DBT models', no_args_is_help=True)
dagster_app = typer.Typer(help='Generate and run Dagster assets and jobs', no_args_is_help=True)
ai_app = typer.Typer(help='AI-assisted generation and code review', no_args_is_help=True)
app.add_typer(dbt_app, name='dbt')
app.add_typer(dagster_app, name='dagster')
app.add_typer(ai_app, name='ai')

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = 'my-dataweave-project'


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def print_logo():
    console.print(
        Panel.fit(
            f'[bold white]dataweave[/bold white] [dim]v{__version__}[/dim]\n[dim]AI-Assisted Data Pipeline CLI[/dim]',
            border_style='cyan',
        )
    )


def _fail(e: Exception):
    console.print(f'[bold red]Error:[/bold red] {e}')
    if isinstance(e, ProjectNotFoundError):
        console.print('Run [bold]dataweave init[/bold] to initialize a project')
    sys.exit(1)


def _fail_unexpected(e: Exception):
    logger.debug('Unexpected error', exc_info=True)
    console.print(f'[bold red]Unexpected error:[/bold red] {e}')
    sys.exit(1)


def _split_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated option, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def _load_project() -> Tuple[ProjectLayout, DataweaveConfig]:
    layout = ProjectLayout.for_root(Path.cwd())
    return layout, load_config(layout.config_path)


def _dbt_manager() -> DbtManager:
    layout, config = _load_project()
    return DbtManager(layout, lenient_schema=config.dbt.lenient_schema)


def _dagster_manager() -> DagsterManager:
    layout, _ = _load_project()
    return DagsterManager(layout)


def _ai_engine() -> AIEngine:
    _, config = _load_project()
    ai_config = config.ai
    if ai_config.api_key is None and os.environ.get('OPENAI_API_KEY'):
        ai_config = ai_config.model_copy(update={'api_key': os.environ['OPENAI_API_KEY']})
    return AIEngine(ai_config)


def _table_context(tables: Optional[str]) -> GenerationContext:
    return GenerationContext(
        project_name='dataweave',
        tables=[TableSchema(name=name) for name in _split_list(tables)],
    )


def _read_source(file: Path) -> Tuple[str, str]:
    path = Path.cwd() / file
    try:
        code = read_text(path)
    except UnicodeDecodeError as e:
        raise DataweaveError(f'Could not read {file}: {e}') from e
    if code is None:
        raise NotFoundError(f'File not found: {file}')
    return code, 'sql' if path.suffix == '.sql' else 'python'


def _version_callback(value: bool):
    if value:
        console.print(f'dataweave {__version__}')
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Enable debug logging'),
    version: Optional[bool] = typer.Option(
        None, '--version', callback=_version_callback, is_eager=True, help='Show the version and exit'
    ),
):
    """AI-assisted CLI for modern data pipelines."""
    configure_logging(verbose)


@app.command()
def init(
    name: str = typer.Argument(DEFAULT_PROJECT_NAME, help='Project name (also the directory created)'),
    dbt: bool = typer.Option(True, '--dbt/--no-dbt', help='Include DBT setup'),
    dagster: bool = typer.Option(True, '--dagster/--no-dagster', help='Include Dagster setup'),
    supabase: bool = typer.Option(True, '--supabase/--no-supabase', help='Include Supabase setup'),
    project_version: str = typer.Option(DEFAULT_PROJECT_VERSION, '--project-version', help='Version of the new project'),
):
    """Initialize a new dataweave project."""
    print_logo()
    target_dir = Path.cwd() / name

    try:
        ProjectScaffolder(
            name,
            target_dir,
            include_dbt=dbt,
            include_dagster=dagster,
            include_supabase=supabase,
            version=project_version,
        ).scaffold()
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)

    console.print(f'[bold green]✓ Project initialized successfully![/bold green] {target_dir}')
    console.print('\nNext steps:')
    console.print(f'  cd {name}')
    console.print('  pip install -e .')
    console.print('  dataweave --help')


@app.command()
def info():
    """Display information about dataweave."""
    print_logo()
    console.print('[bold]About dataweave[/bold]\n')
    console.print('Dataweave is an AI-assisted CLI for building modern data pipelines.')
    console.print('It integrates DBT, Dagster, and Supabase with code generation and scaffolding.\n')

    table = Table(title='Components')
    table.add_column('Component', style='cyan')
    table.add_column('Commands', style='green')
    table.add_row('dbt', 'model-new, run, test, compile, docs, introspect')
    table.add_row('dagster', 'asset-new, job-new, dbt-asset, run-asset, run-job, dev, validate')
    table.add_row('ai', 'generate-dbt, generate-dagster, explain, optimize, document')
    console.print(table)


# ---------------------------------------------------------------------------
# dbt
# ---------------------------------------------------------------------------


@dbt_app.command('model-new')
def dbt_model_new(
    name: str = typer.Argument(..., help='Model name (stg_, int_, fct_ or dim_ prefix picks the directory)'),
    sql: Optional[str] = typer.Option(None, '--sql', '-s', help='SQL content for the model'),
    description: Optional[str] = typer.Option(None, '--description', '-d', help='Model description'),
    materialized: str = typer.Option('view', '--materialized', '-m', help='table, view, incremental or ephemeral'),
    tags: Optional[str] = typer.Option(None, '--tags', help='Comma-separated list of tags'),
):
    """Generate a new DBT model."""
    try:
        path = _dbt_manager().generate_model(
            name, sql=sql, description=description, materialized=materialized, tags=_split_list(tags)
        )
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(f'[green]✓[/green] Generated DBT model [bold]{name}[/bold] in {resolve_model_directory(name).value}/')
    console.print(f'  {path}')


@dbt_app.command('run')
def dbt_run(model: Optional[str] = typer.Argument(None, help='Model to run (default: all)')):
    """Run DBT models."""
    try:
        _dbt_manager().run_model(model)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print('[green]✓[/green] DBT run completed')


@dbt_app.command('test')
def dbt_test(model: Optional[str] = typer.Argument(None, help='Model to test (default: all)')):
    """Run DBT tests."""
    try:
        _dbt_manager().test_model(model)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print('[green]✓[/green] DBT tests completed')


@dbt_app.command('compile')
def dbt_compile(model: Optional[str] = typer.Argument(None, help='Model to compile (default: all)')):
    """Compile DBT models."""
    try:
        _dbt_manager().compile_model(model)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print('[green]✓[/green] DBT compilation completed')


@dbt_app.command('docs')
def dbt_docs(port: int = typer.Option(DOCS_PORT, '--port', '-p', help='Port for the docs server')):
    """Generate and serve DBT documentation."""
    try:
        _dbt_manager().generate_docs(port)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)


@dbt_app.command('introspect')
def dbt_introspect():
    """Check the database connection and show the configured sources."""
    try:
        sources = _dbt_manager().introspect_database()
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print('[green]✓[/green] Database introspection completed')
    if sources:
        console.print('\n[dim]Database schema information:[/dim]')
        console.print(Syntax(sources, 'yaml'))


# ---------------------------------------------------------------------------
# Dagster
# ---------------------------------------------------------------------------


@dagster_app.command('asset-new')
def dagster_asset_new(
    name: str = typer.Argument(..., help='Asset name'),
    description: Optional[str] = typer.Option(None, '--description', '-d', help='Asset description'),
    deps: Optional[str] = typer.Option(None, '--deps', help='Comma-separated list of dependencies'),
    code: Optional[str] = typer.Option(None, '--code', help='Python code for the asset'),
    schedule: Optional[str] = typer.Option(None, '--schedule', help='Cron schedule for the asset'),
    tags: Optional[str] = typer.Option(None, '--tags', help='Comma-separated list of tags'),
    compute_kind: Optional[str] = typer.Option(None, '--compute-kind', help='Compute kind (e.g., pandas, spark)'),
    io_manager: Optional[str] = typer.Option(None, '--io-manager', help='IO manager key'),
    partitions: Optional[str] = typer.Option(None, '--partitions', help='Start date for daily partitions'),
):
    """Generate a new Dagster asset."""
    try:
        path = _dagster_manager().generate_asset(
            name,
            description=description,
            dependencies=_split_list(deps),
            code=code,
            partitions=partitions,
            schedule=schedule,
            tags=_split_list(tags),
            compute_kind=compute_kind,
            io_manager=io_manager,
        )
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(f'[green]✓[/green] Generated Dagster asset [bold]{name}[/bold]')
    console.print(f'  {path}')
    if schedule:
        console.print(f'[green]✓[/green] Generated schedule [bold]{name}_schedule[/bold] ({schedule})')


@dagster_app.command('job-new')
def dagster_job_new(
    name: str = typer.Argument(..., help='Job name'),
    description: Optional[str] = typer.Option(None, '--description', '-d', help='Job description'),
    assets: Optional[str] = typer.Option(None, '--assets', help='Comma-separated list of assets'),
    schedule: Optional[str] = typer.Option(None, '--schedule', help='Cron schedule for the job'),
    tags: Optional[str] = typer.Option(None, '--tags', help='Comma-separated list of tags'),
):
    """Generate a new Dagster job."""
    try:
        path = _dagster_manager().generate_job(
            name, description=description, assets=_split_list(assets), schedule=schedule, tags=_split_list(tags)
        )
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(f'[green]✓[/green] Generated Dagster job [bold]{name}[/bold]')
    console.print(f'  {path}')
    if schedule:
        console.print(f'[green]✓[/green] Generated schedule [bold]{name}_schedule[/bold] ({schedule})')


@dagster_app.command('dbt-asset')
def dagster_dbt_asset(model: str = typer.Argument(..., help='DBT model to wrap')):
    """Generate a Dagster asset that runs a DBT model."""
    try:
        path = _dagster_manager().generate_dbt_asset(model)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(f'[green]✓[/green] Generated Dagster asset for DBT model [bold]{model}[/bold]')
    console.print(f'  {path}')


@dagster_app.command('run-asset')
def dagster_run_asset(name: str = typer.Argument(..., help='Asset to materialize')):
    """Materialize a Dagster asset."""
    try:
        _dagster_manager().run_asset(name)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(f'[green]✓[/green] Asset {name} materialized')


@dagster_app.command('run-job')
def dagster_run_job(name: str = typer.Argument(..., help='Job to execute')):
    """Execute a Dagster job."""
    try:
        _dagster_manager().run_job(name)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(f'[green]✓[/green] Job {name} executed')


@dagster_app.command('dev')
def dagster_dev(port: int = typer.Option(DEFAULT_PORT, '--port', '-p', help='Port number')):
    """Start the Dagster development server."""
    console.print(f'Starting Dagster UI on port {port}...')
    try:
        _dagster_manager().start_dagster(port)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)


@dagster_app.command('validate')
def dagster_validate():
    """Validate the Dagster pipeline definitions."""
    try:
        _dagster_manager().validate_pipeline()
    except ExternalProcessError as e:
        console.print('[bold red]Pipeline validation failed[/bold red]')
        _fail(e)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print('[green]✓[/green] Pipeline validation passed')


# ---------------------------------------------------------------------------
# AI
# ---------------------------------------------------------------------------


@ai_app.command('generate-dbt')
def ai_generate_dbt(
    prompt: str = typer.Argument(..., help='What the model should do'),
    name: Optional[str] = typer.Option(None, '--name', '-n', help='Create the model under this name'),
    tables: Optional[str] = typer.Option(None, '--tables', help='Comma-separated list of available tables'),
):
    """Generate a DBT model using AI."""
    try:
        engine = _ai_engine()
        sql, description = engine.generate_dbt_model(prompt, _table_context(tables))
        if name:
            path = _dbt_manager().generate_model(name, sql=sql, description=description)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)

    if name:
        console.print(f'[green]✓[/green] Generated and created DBT model [bold]{name}[/bold]')
        console.print(f'  {path}')
        return
    console.print('[bold blue]Generated SQL:[/bold blue]')
    console.print(Syntax(sql, 'sql'))
    console.print('[bold blue]Description:[/bold blue]')
    console.print(description, markup=False)
    console.print('\n[dim]To create this model, pass --name <name>[/dim]')


@ai_app.command('generate-dagster')
def ai_generate_dagster(
    prompt: str = typer.Argument(..., help='What the asset should do'),
    name: Optional[str] = typer.Option(None, '--name', '-n', help='Create the asset under this name'),
    tables: Optional[str] = typer.Option(None, '--tables', help='Comma-separated list of available tables'),
):
    """Generate a Dagster asset using AI."""
    try:
        engine = _ai_engine()
        code, description = engine.generate_dagster_asset(prompt, _table_context(tables))
        if name:
            path = _dagster_manager().generate_asset(name, description=description, code=code)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)

    if name:
        console.print(f'[green]✓[/green] Generated and created Dagster asset [bold]{name}[/bold]')
        console.print(f'  {path}')
        return
    console.print('[bold blue]Generated Python code:[/bold blue]')
    console.print(Syntax(code, 'python'))
    console.print('[bold blue]Description:[/bold blue]')
    console.print(description, markup=False)
    console.print('\n[dim]To create this asset, pass --name <name>[/dim]')


@ai_app.command('explain')
def ai_explain(file: Path = typer.Argument(..., help='SQL or Python file to explain')):
    """Explain code using AI."""
    try:
        code, code_type = _read_source(file)
        explanation = _ai_engine().explain_code(code, code_type)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(Markdown(explanation))


@ai_app.command('optimize')
def ai_optimize(file: Path = typer.Argument(..., help='SQL or Python file to review')):
    """Get optimization suggestions using AI."""
    try:
        code, code_type = _read_source(file)
        suggestions = _ai_engine().optimize_code(code, code_type)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(Markdown(suggestions))


@ai_app.command('document')
def ai_document(model: str = typer.Argument(..., help='DBT model to document')):
    """Generate documentation for a DBT model using AI."""
    try:
        manager = _dbt_manager()
        sql = read_text(manager.find_model(model))
        documentation = _ai_engine().generate_documentation(model, sql)
    except DataweaveError as e:
        _fail(e)
    except Exception as e:
        _fail_unexpected(e)
    console.print(Markdown(documentation))
    console.print("\n[dim]Save this documentation to your model's schema.yml or README.md[/dim]")


def main():
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
