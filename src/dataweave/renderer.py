"""Template rendering for generated dbt and Dagster files."""

import json
import re
from typing import Iterable, List, Optional, Sequence

from jinja2 import Environment, StrictUndefined

from dataweave import templates
from dataweave.models import ArtifactDescriptor, ArtifactKind

# A {{ config(...) }} block, arguments may span lines but never cross '}}'
CONFIG_BLOCK_PATTERN = re.compile(r'[ \t]*\{\{-?\s*config\s*\(((?:(?!\}\}).)*?)\)\s*-?\}\}', re.DOTALL)

ASSET_DECORATOR_PATTERN = re.compile(r'^@asset\b', re.MULTILINE)
FUNCTION_DEF_PATTERN = re.compile(r'^(async\s+)?def\s+\w+', re.MULTILINE)
TOP_LEVEL_IMPORT_PATTERN = re.compile(r'^(import|from)\s+(?!__future__\b)', re.MULTILINE)

# Asset options that shape the decorator; a description alone does not
STRUCTURAL_ASSET_OPTIONS = ('dependencies', 'tags', 'compute_kind', 'io_manager', 'partitions')


def python_string(value: str) -> str:
    """Quote ``value`` as a double-quoted Python string literal."""
    return json.dumps(str(value), ensure_ascii=False)


def sql_string(value: str) -> str:
    """Quote ``value`` as a single-quoted string for a dbt config call."""
    escaped = str(value).replace('\\', '\\\\').replace("'", "\\'")
    return f"'{escaped}'"


def docstring_text(value: str) -> str:
    return str(value).replace('"""', '\\"\\"\\"')


def class_name(name: str) -> str:
    """'daily_sales' -> 'DailySales'."""
    return ''.join(part[:1].upper() + part[1:] for part in name.split('_') if part) or 'Generated'


# ---------------------------------------------------------------------------
# dbt config header
# ---------------------------------------------------------------------------


def build_model_config(materialized: str = 'view', tags: Sequence[str] = ()) -> str:
    """Build the ``{{ config(...) }}`` header of a model.

    Args:
        materialized: Materialization strategy (view, table, incremental, ephemeral)
        tags: Optional dbt tags

    Returns:
        Config header, e.g. ``{{ config(materialized='table', tags=['daily']) }}``
    """
    options = [f'materialized={sql_string(materialized)}']
    if tags:
        options.append(f"tags=[{', '.join(sql_string(tag) for tag in tags)}]")
    return f"{{{{ config({', '.join(options)}) }}}}"


def apply_model_config(sql: str, header: str) -> str:
    """Put ``header`` into caller-supplied SQL.

    A config block on the first line that is neither blank nor a ``--``
    comment is replaced in place. Otherwise the header goes right before that
    line.
    """
    offset = 0
    for line in sql.splitlines(keepends=True):
        stripped = line.strip()
        if stripped and not stripped.startswith('--'):
            break
        offset += len(line)
    else:
        return f'{header}\n\n{sql}'

    match = CONFIG_BLOCK_PATTERN.match(sql, offset)
    if match:
        return sql[:offset] + header + sql[match.end() :]
    return f'{sql[:offset]}{header}\n\n{sql[offset:]}'


# ---------------------------------------------------------------------------
# Dagster decorators
# ---------------------------------------------------------------------------


def format_tags(tags: Iterable[str]) -> str:
    """Dagster tags are a str -> str mapping; bare tags get an empty value."""
    return '{' + ', '.join(f'{python_string(tag)}: ""' for tag in tags) + '}'


def build_asset_decorator(
    dependencies: Sequence[str] = (),
    description: Optional[str] = None,
    tags: Sequence[str] = (),
    compute_kind: Optional[str] = None,
    io_manager: Optional[str] = None,
    partitions: Optional[str] = None,
) -> str:
    """Build an ``@asset`` decorator line."""
    options = []
    if dependencies:
        ins = ', '.join(f'{python_string(dep)}: AssetIn()' for dep in dependencies)
        options.append(f'ins={{{ins}}}')
    if description:
        options.append(f'description={python_string(description)}')
    if tags:
        options.append(f'tags={format_tags(tags)}')
    if compute_kind:
        options.append(f'compute_kind={python_string(compute_kind)}')
    if io_manager:
        options.append(f'io_manager_key={python_string(io_manager)}')
    if partitions:
        options.append(f'partitions_def=DailyPartitionsDefinition(start_date={python_string(partitions)})')

    return f"@asset({', '.join(options)})" if options else '@asset'


def asset_dagster_names(dependencies: Sequence[str] = (), partitions: Optional[str] = None) -> List[str]:
    """Names the asset decorator needs from the ``dagster`` package."""
    names = ['asset']
    if partitions:
        names.append('DailyPartitionsDefinition')
    if dependencies:
        names.append('AssetIn')
    return names


def build_job_decorator(description: Optional[str] = None, tags: Sequence[str] = ()) -> str:
    options = []
    if description:
        options.append(f'description={python_string(description)}')
    if tags:
        options.append(f'tags={format_tags(tags)}')
    return f"@job({', '.join(options)})" if options else '@job'


def _decorator_end(code: str, start: int) -> int:
    """Index just past the decorator starting at ``start`` (balanced parentheses)."""
    pos = start + len('@asset')
    if pos >= len(code) or code[pos] != '(':
        return pos
    depth = 0
    for idx in range(pos, len(code)):
        char = code[idx]
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth == 0:
                return idx + 1
    # Unbalanced, treat the rest of the line as the decorator
    newline = code.find('\n', start)
    return len(code) if newline == -1 else newline


def _missing_imports(code: str, names: Sequence[str]) -> List[str]:
    missing = []
    for name in names:
        if not re.search(rf'^\s*from\s+dagster\s+import\s+.*\b{re.escape(name)}\b', code, re.MULTILINE):
            missing.append(name)
    return missing


def apply_asset_decorator(code: str, decorator: str, dagster_names: Sequence[str] = ()) -> str:
    """Put ``decorator`` into caller-supplied asset code.

    The first top-level ``@asset`` decorator is replaced, even when its arguments
    span several lines. Without one, the decorator is inserted before the first
    top-level function. Code with neither is returned unchanged.
    """
    match = ASSET_DECORATOR_PATTERN.search(code)
    if match:
        end = _decorator_end(code, match.start())
        code = code[: match.start()] + decorator + code[end:]
    else:
        func = FUNCTION_DEF_PATTERN.search(code)
        if not func:
            return code
        code = code[: func.start()] + decorator + '\n' + code[func.start() :]

    missing = _missing_imports(code, dagster_names)
    if missing:
        import_line = f"from dagster import {', '.join(missing)}\n"
        first_import = TOP_LEVEL_IMPORT_PATTERN.search(code)
        at = first_import.start() if first_import else 0
        code = code[:at] + import_line + code[at:]
    return code


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class Renderer:
    """Renders artifact descriptors into file content with jinja2 templates."""

    def __init__(self):
        self.env = Environment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def render_template(self, source: str, **context) -> str:
        return self.env.from_string(source).render(**context)

    def render(self, descriptor: ArtifactDescriptor) -> str:
        """Produce the text of the file described by ``descriptor``.

        Args:
            descriptor: Artifact to render

        Returns:
            File content
        """
        if descriptor.kind is ArtifactKind.MODEL:
            return self.render_model(descriptor)
        if descriptor.kind is ArtifactKind.ASSET:
            if descriptor.get('dbt_model'):
                return self.render_dbt_asset(descriptor)
            return self.render_asset(descriptor)
        if descriptor.kind is ArtifactKind.JOB:
            return self.render_job(descriptor)
        return self.render_schedule(descriptor)

    def render_model(self, descriptor: ArtifactDescriptor) -> str:
        header = build_model_config(descriptor.get('materialized', 'view'), descriptor.get('tags', []))
        sql = descriptor.get('sql')
        if sql:
            return apply_model_config(sql, header)
        return self.render_template(templates.MODEL_SQL_TEMPLATE, name=descriptor.name, header=header)

    def render_asset(self, descriptor: ArtifactDescriptor) -> str:
        dependencies = list(descriptor.get('dependencies', []))
        partitions = descriptor.get('partitions')
        description = descriptor.get('description')
        decorator = build_asset_decorator(
            dependencies=dependencies,
            description=description,
            tags=descriptor.get('tags', []),
            compute_kind=descriptor.get('compute_kind'),
            io_manager=descriptor.get('io_manager'),
            partitions=partitions,
        )

        code = descriptor.get('code')
        if code:
            if not any(descriptor.get(option) for option in STRUCTURAL_ASSET_OPTIONS):
                return code
            return apply_asset_decorator(code, decorator, asset_dagster_names(dependencies, partitions))

        imports = ['from dagster import asset', 'import pandas as pd']
        if partitions:
            imports.append('from dagster import DailyPartitionsDefinition')
        if dependencies:
            imports.append('from dagster import AssetIn')

        return self.render_template(
            templates.ASSET_TEMPLATE,
            imports=imports,
            decorator=decorator,
            name=descriptor.name,
            params=', '.join(f'{dep}: pd.DataFrame' for dep in dependencies),
            docstring=docstring_text(description or f'Asset: {descriptor.name}'),
            dependencies=dependencies,
        )

    def render_dbt_asset(self, descriptor: ArtifactDescriptor) -> str:
        return self.render_template(
            templates.DBT_ASSET_TEMPLATE, name=descriptor.name, model=descriptor.get('dbt_model')
        )

    def render_job(self, descriptor: ArtifactDescriptor) -> str:
        description = descriptor.get('description')
        return self.render_template(
            templates.JOB_TEMPLATE,
            name=descriptor.name,
            config_class=f'{class_name(descriptor.name)}Config',
            assets=list(descriptor.get('assets', [])),
            decorator=build_job_decorator(description, descriptor.get('tags', [])),
            docstring=docstring_text(description or f'Job: {descriptor.name}'),
        )

    def render_schedule(self, descriptor: ArtifactDescriptor) -> str:
        source = templates.JOB_SCHEDULE_TEMPLATE if descriptor.get('target_is_job') else templates.ASSET_SCHEDULE_TEMPLATE
        return self.render_template(
            source,
            name=descriptor.name,
            target=descriptor.get('target'),
            cron=python_string(descriptor.get('cron')),
        )


def render(descriptor: ArtifactDescriptor) -> str:
    """Render ``descriptor`` with a fresh :class:`Renderer`."""
    return Renderer().render(descriptor)
