"""
Unit tests for template rendering of dbt models and Dagster assets, jobs and schedules.
"""

import ast

import pytest

from dataweave.models import ArtifactDescriptor, ArtifactKind
from dataweave.renderer import (
    Renderer,
    apply_asset_decorator,
    apply_model_config,
    build_asset_decorator,
    build_model_config,
    class_name,
    format_tags,
    render,
)

VIEW_HEADER = "{{ config(materialized='view') }}"


@pytest.fixture
def renderer():
    return Renderer()


@pytest.mark.unit
class TestModelConfig:
    def test_default_header(self):
        assert build_model_config() == VIEW_HEADER

    def test_header_with_tags(self):
        header = build_model_config('table', ['daily', 'finance'])
        assert header == "{{ config(materialized='table', tags=['daily', 'finance']) }}"

    def test_quotes_are_escaped(self):
        assert build_model_config('view', ["it's"]) == "{{ config(materialized='view', tags=['it\\'s']) }}"

    def test_replaces_existing_config_block(self):
        sql = "{{ config(materialized='table') }}\n\nselect 1"
        assert apply_model_config(sql, VIEW_HEADER) == f'{VIEW_HEADER}\n\nselect 1'

    def test_replaces_multiline_config_block(self):
        sql = "-- orders\n{{ config(\n    materialized='table',\n    schema='sales'\n) }}\nselect * from orders"

        result = apply_model_config(sql, VIEW_HEADER)

        assert result == f'-- orders\n{VIEW_HEADER}\nselect * from orders'
        assert 'schema=' not in result

    def test_replaces_whitespace_control_config_block(self):
        sql = "{{- config(materialized='table') -}}\nselect 1\n"

        result = apply_model_config(sql, VIEW_HEADER)

        assert result == f'{VIEW_HEADER}\nselect 1\n'
        assert result.count('config(') == 1

    def test_malformed_config_keeps_body(self):
        sql = "{{ config(materialized='table' }}\nselect * from {{ ref('orders') }}\n"

        result = apply_model_config(sql, VIEW_HEADER)

        assert result == f'{VIEW_HEADER}\n\n{sql}'

    def test_config_after_body_is_not_replaced(self):
        sql = "select 1\n-- {{ config(materialized='table') }}\n"

        assert apply_model_config(sql, VIEW_HEADER) == f'{VIEW_HEADER}\n\n{sql}'

    def test_inserts_after_leading_comments(self):
        sql = '-- comment\n\nselect 1'
        assert apply_model_config(sql, VIEW_HEADER) == f'-- comment\n\n{VIEW_HEADER}\n\nselect 1'

    def test_inserts_at_top_without_comments(self):
        assert apply_model_config('select 1\n', VIEW_HEADER) == f'{VIEW_HEADER}\n\nselect 1\n'

    def test_comment_only_sql(self):
        assert apply_model_config('-- nothing yet', VIEW_HEADER) == f'{VIEW_HEADER}\n\n-- nothing yet'


@pytest.mark.unit
class TestRenderModel:
    def test_placeholder_model(self, renderer):
        descriptor = ArtifactDescriptor('stg_orders', ArtifactKind.MODEL, {'materialized': 'table', 'tags': ['x']})

        result = renderer.render(descriptor)

        assert result.startswith('-- Generated model: stg_orders\n')
        assert "{{ config(materialized='table', tags=['x']) }}" in result
        # dbt's own jinja must survive rendering
        assert "{{ ref('source_table') }}" in result
        assert result.endswith('\n')

    def test_caller_sql_keeps_body(self, renderer):
        sql = "select id from {{ ref('stg_users') }}"
        descriptor = ArtifactDescriptor('fct_users', ArtifactKind.MODEL, {'sql': sql, 'materialized': 'incremental'})

        result = renderer.render(descriptor)

        assert result == "{{ config(materialized='incremental') }}\n\nselect id from {{ ref('stg_users') }}"

    def test_default_materialization_is_view(self, renderer):
        descriptor = ArtifactDescriptor('stg_x', ArtifactKind.MODEL, {'sql': 'select 1'})
        assert renderer.render(descriptor).startswith(VIEW_HEADER)


@pytest.mark.unit
class TestAssetDecorator:
    def test_bare_decorator(self):
        assert build_asset_decorator() == '@asset'

    def test_all_options(self):
        decorator = build_asset_decorator(
            dependencies=['raw_orders'],
            description='Clean orders',
            tags=['daily'],
            compute_kind='pandas',
            io_manager='warehouse',
            partitions='2024-01-01',
        )

        assert decorator == (
            '@asset(ins={"raw_orders": AssetIn()}, description="Clean orders", tags={"daily": ""}, '
            'compute_kind="pandas", io_manager_key="warehouse", '
            'partitions_def=DailyPartitionsDefinition(start_date="2024-01-01"))'
        )

    def test_tags_are_a_mapping(self):
        assert format_tags(['a', 'b']) == '{"a": "", "b": ""}'

    def test_replaces_multiline_decorator(self):
        code = '@asset(\n    description="old",\n    compute_kind="sql",\n)\ndef foo():\n    pass\n'

        result = apply_asset_decorator(code, '@asset(compute_kind="pandas")', ['asset'])

        assert result == 'from dagster import asset\n@asset(compute_kind="pandas")\ndef foo():\n    pass\n'

    def test_inserts_before_first_function(self):
        code = 'from dagster import asset\n\n\ndef helper():\n    return 1\n'

        result = apply_asset_decorator(code, '@asset(compute_kind="pandas")', ['asset'])

        assert result == 'from dagster import asset\n\n\n@asset(compute_kind="pandas")\ndef helper():\n    return 1\n'

    def test_missing_imports_go_before_first_import(self):
        code = 'from __future__ import annotations\nimport pandas as pd\n\n@asset\ndef foo():\n    pass\n'

        result = apply_asset_decorator(code, '@asset(ins={"a": AssetIn()})', ['asset', 'AssetIn'])

        assert result.startswith(
            'from __future__ import annotations\nfrom dagster import asset, AssetIn\nimport pandas as pd\n'
        )

    def test_code_without_function_is_unchanged(self):
        code = 'x = 1\n'
        assert apply_asset_decorator(code, '@asset(tags={"a": ""})', ['asset']) == code


@pytest.mark.unit
class TestRenderAsset:
    def test_placeholder_asset(self, renderer):
        descriptor = ArtifactDescriptor(
            'orders',
            ArtifactKind.ASSET,
            {'dependencies': ['raw_orders', 'raw_customers'], 'description': 'Orders'},
        )

        result = renderer.render(descriptor)

        assert result.startswith('from dagster import asset\nimport pandas as pd\nfrom dagster import AssetIn\n')
        assert '@asset(ins={"raw_orders": AssetIn(), "raw_customers": AssetIn()}, description="Orders")' in result
        assert 'def orders(raw_orders: pd.DataFrame, raw_customers: pd.DataFrame):' in result
        assert '# Example: processed_data = raw_orders.copy()' in result
        ast.parse(result)

    def test_placeholder_asset_without_options(self, renderer):
        result = renderer.render(ArtifactDescriptor('sample', ArtifactKind.ASSET))

        assert '\n@asset\ndef sample():\n' in result
        assert 'Asset: sample' in result
        ast.parse(result)

    def test_partitioned_asset_imports_partitions(self, renderer):
        descriptor = ArtifactDescriptor('events', ArtifactKind.ASSET, {'partitions': '2024-01-01'})

        result = renderer.render(descriptor)

        assert 'from dagster import DailyPartitionsDefinition' in result
        assert 'partitions_def=DailyPartitionsDefinition(start_date="2024-01-01")' in result
        ast.parse(result)

    def test_description_is_escaped(self, renderer):
        descriptor = ArtifactDescriptor('quoted', ArtifactKind.ASSET, {'description': 'Say "hi" """now"""'})

        result = renderer.render(descriptor)

        assert 'description="Say \\"hi\\" \\"\\"\\"now\\"\\"\\""' in result
        ast.parse(result)

    def test_caller_code_is_verbatim_without_structural_options(self, renderer):
        code = 'from dagster import asset\n\n@asset\ndef custom():\n    return 42\n'
        descriptor = ArtifactDescriptor('custom', ArtifactKind.ASSET, {'code': code, 'description': 'ignored'})

        assert renderer.render(descriptor) == code

    def test_caller_code_gets_structural_options(self, renderer):
        code = 'import pandas as pd\n\n@asset\ndef custom():\n    return pd.DataFrame()\n'
        descriptor = ArtifactDescriptor('custom', ArtifactKind.ASSET, {'code': code, 'tags': ['daily']})

        result = renderer.render(descriptor)

        assert result == (
            'from dagster import asset\nimport pandas as pd\n\n@asset(tags={"daily": ""})\n'
            'def custom():\n    return pd.DataFrame()\n'
        )

    def test_dbt_asset(self, renderer):
        descriptor = ArtifactDescriptor('dbt_stg_users', ArtifactKind.ASSET, {'dbt_model': 'stg_users'})

        result = renderer.render(descriptor)

        assert 'def dbt_stg_users(config: DbtConfig) -> pd.DataFrame:' in result
        assert 'Dagster asset for DBT model: stg_users' in result
        assert '#     select="stg_users",' in result
        ast.parse(result)


@pytest.mark.unit
class TestRenderJobAndSchedule:
    def test_job_with_assets(self, renderer):
        descriptor = ArtifactDescriptor(
            'nightly_refresh', ArtifactKind.JOB, {'assets': ['orders', 'customers'], 'description': 'Nightly run'}
        )

        result = renderer.render(descriptor)

        assert 'class NightlyRefreshConfig(Config):' in result
        assert '@op\ndef orders_op():' in result
        assert '@op\ndef customers_op():' in result
        assert '@job(description="Nightly run")\ndef nightly_refresh():' in result
        assert result.endswith('    orders_op()\n    customers_op()\n')
        ast.parse(result)

    def test_job_without_assets_calls_main_op(self, renderer):
        result = renderer.render(ArtifactDescriptor('cleanup', ArtifactKind.JOB, {'tags': ['ops']}))

        assert '@job(tags={"ops": ""})' in result
        assert result.endswith('    cleanup_op()\n')
        ast.parse(result)

    def test_job_schedule(self, renderer):
        descriptor = ArtifactDescriptor(
            'nightly_schedule',
            ArtifactKind.SCHEDULED_TRIGGER,
            {'target': 'nightly', 'cron': '0 2 * * *', 'target_is_job': True},
        )

        result = renderer.render(descriptor)

        assert 'from ..jobs.nightly import nightly' in result
        assert '@schedule(cron_schedule="0 2 * * *", job=nightly)\ndef nightly_schedule():' in result
        ast.parse(result)

    def test_asset_schedule(self, renderer):
        descriptor = ArtifactDescriptor(
            'orders_schedule', ArtifactKind.SCHEDULED_TRIGGER, {'target': 'orders', 'cron': '@daily'}
        )

        result = renderer.render(descriptor)

        assert 'from ..assets.orders import orders' in result
        assert 'orders_job = define_asset_job("orders_job", selection=[orders])' in result
        assert '@schedule(cron_schedule="@daily", job=orders_job)' in result
        assert 'return RunRequest()' in result
        ast.parse(result)


@pytest.mark.unit
class TestDispatch:
    def test_each_kind_uses_its_template(self, renderer):
        outputs = {
            kind: renderer.render(ArtifactDescriptor('thing', kind, {'target': 'thing', 'cron': '@hourly'}))
            for kind in ArtifactKind
        }

        assert '-- Generated model: thing' in outputs[ArtifactKind.MODEL]
        assert 'def thing():' in outputs[ArtifactKind.ASSET]
        assert '@job' in outputs[ArtifactKind.JOB]
        assert '@schedule' in outputs[ArtifactKind.SCHEDULED_TRIGGER]
        assert len(set(outputs.values())) == len(ArtifactKind)

    def test_module_render_matches_renderer(self, renderer):
        descriptor = ArtifactDescriptor('stg_a', ArtifactKind.MODEL, {'sql': 'select 1'})
        assert render(descriptor) == renderer.render(descriptor)

    def test_rendering_is_deterministic(self, renderer):
        descriptor = ArtifactDescriptor('a', ArtifactKind.ASSET, {'dependencies': ['b'], 'tags': ['t']})
        assert renderer.render(descriptor) == renderer.render(descriptor)


@pytest.mark.unit
@pytest.mark.parametrize(
    'name,expected', [('daily_sales', 'DailySales'), ('orders', 'Orders'), ('a__b', 'AB'), ('_', 'Generated')]
)
def test_class_name(name, expected):
    assert class_name(name) == expected
