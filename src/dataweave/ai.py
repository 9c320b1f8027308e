"""AI-assisted generation of dbt models, Dagster assets and documentation."""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dataweave.config import AIConfig, ProviderKind
from dataweave.exceptions import ProviderError, ProviderNotImplementedError
from dataweave.renderer import Renderer
from dataweave.templates import (
    DAGSTER_SYSTEM_PROMPT,
    DBT_SYSTEM_PROMPT,
    DOCUMENTATION_PROMPT,
    TABLE_SCHEMA_TEMPLATE,
)

logger = logging.getLogger(__name__)

SQL_BLOCK_PATTERN = re.compile(r'```sql\n(.*?)\n```', re.DOTALL)
PYTHON_BLOCK_PATTERN = re.compile(r'```python\n(.*?)\n```', re.DOTALL)
DESCRIPTION_PATTERN = re.compile(r'DESCRIPTION:\s*(.+)')

DEFAULT_PROJECT_NAME = 'dataweave project'
DEFAULT_DB_TYPE = 'PostgreSQL'
DEFAULT_DBT_DESCRIPTION = 'AI-generated DBT model'
DEFAULT_DAGSTER_DESCRIPTION = 'AI-generated Dagster asset'


@dataclass
class ColumnSchema:
    name: str
    type: str
    nullable: bool = False
    primary_key: bool = False
    foreign_key: Optional[str] = None


@dataclass
class TableSchema:
    name: str
    columns: List[ColumnSchema] = field(default_factory=list)


@dataclass
class GenerationContext:
    """What the AI is told about the project it generates code for."""

    tables: List[TableSchema] = field(default_factory=list)
    existing_models: List[str] = field(default_factory=list)
    project_name: Optional[str] = None
    db_type: Optional[str] = None


def column_flags(column: ColumnSchema) -> str:
    """Schema annotations for a column, e.g. `` (PK, NOT NULL)``."""
    flags = []
    if column.primary_key:
        flags.append('PK')
    if column.foreign_key:
        flags.append(f'FK -> {column.foreign_key}')
    if not column.nullable:
        flags.append('NOT NULL')
    return f" ({', '.join(flags)})" if flags else ''


class AIProvider(ABC):
    """Backend that turns prompts into text."""

    def __init__(self, config: AIConfig):
        self.config = config

    @abstractmethod
    def generate(self, prompt: str, context: Optional[GenerationContext] = None) -> str:
        pass

    @abstractmethod
    def explain(self, code: str, code_type: str) -> str:
        pass

    @abstractmethod
    def optimize(self, code: str, code_type: str) -> str:
        pass


MOCK_DBT_RESPONSE = """\
```sql
-- Generated DBT model based on user request
{{ config(materialized='view') }}

select
    id,
    name,
    email,
    created_at,
    updated_at
from {{ source('raw', 'users') }}
where created_at >= '2023-01-01'
```

DESCRIPTION: Sample DBT model that selects user data with basic filtering."""

MOCK_DAGSTER_RESPONSE = '''\
```python
from dagster import asset
import pandas as pd

@asset(description="Sample data processing asset")
def sample_asset():
    """
    Processes sample data for analysis

    Returns:
        pd.DataFrame: Processed data
    """
    data = pd.DataFrame({
        'id': [1, 2, 3],
        'value': [100, 200, 300]
    })

    data['processed_value'] = data['value'] * 2

    return data
```

DESCRIPTION: Sample Dagster asset that processes data and applies transformations.'''

MOCK_PLAIN_RESPONSE = 'This is a mock response. Please configure a real AI provider.'


class OpenAIProvider(AIProvider):
    """Offline stand-in for OpenAI that returns canned responses.

    No network request is made. The responses have the same shape as real
    completions, so the parsing in AIEngine can be exercised end to end.
    """

    def __init__(self, config: AIConfig):
        super().__init__(config)
        self._warned = False

    def _warn(self) -> None:
        if not self._warned:
            logger.warning('Using mock OpenAI provider. Set OPENAI_API_KEY for real functionality.')
            self._warned = True

    def generate(self, prompt: str, context: Optional[GenerationContext] = None) -> str:
        self._warn()
        if 'DBT model' in prompt:
            return MOCK_DBT_RESPONSE
        if 'Dagster asset' in prompt:
            return MOCK_DAGSTER_RESPONSE
        return MOCK_PLAIN_RESPONSE

    def explain(self, code: str, code_type: str) -> str:
        self._warn()
        return (
            '## Code Explanation\n\n'
            f'This {code_type} code appears to:\n'
            '1. Process data from input sources\n'
            '2. Apply transformations and business logic\n'
            '3. Return processed results\n\n'
            'Note: This is a mock explanation. Configure a real AI provider for detailed analysis.'
        )

    def optimize(self, code: str, code_type: str) -> str:
        self._warn()
        return (
            '## Optimization Suggestions\n\n'
            '1. **Performance**: Consider adding indexes on frequently queried columns\n'
            '2. **Readability**: Break complex queries into smaller, named components\n'
            '3. **Maintainability**: Add comments explaining business logic\n\n'
            'Note: This is a mock optimization. Configure a real AI provider for detailed suggestions.'
        )


class _UnimplementedProvider(AIProvider):
    label = ''

    def __init__(self, config: AIConfig):
        super().__init__(config)
        logger.warning(f'{self.label} provider not yet implemented')

    def _fail(self):
        raise ProviderNotImplementedError(f'{self.label} provider not yet implemented')

    def generate(self, prompt: str, context: Optional[GenerationContext] = None) -> str:
        self._fail()

    def explain(self, code: str, code_type: str) -> str:
        self._fail()

    def optimize(self, code: str, code_type: str) -> str:
        self._fail()


class AnthropicProvider(_UnimplementedProvider):
    label = 'Anthropic'


class LocalProvider(_UnimplementedProvider):
    label = 'Local'


PROVIDERS = {
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.ANTHROPIC: AnthropicProvider,
    ProviderKind.LOCAL: LocalProvider,
}


def create_provider(config: AIConfig) -> AIProvider:
    """Instantiate the provider selected in ``config``.

    Raises:
        ProviderError: If the provider is unknown
    """
    try:
        provider_class = PROVIDERS[ProviderKind(config.provider)]
    except (KeyError, ValueError) as e:
        raise ProviderError(f'Unsupported AI provider: {config.provider}') from e
    return provider_class(config)


class AIEngine:
    """Builds prompts, calls the provider and extracts code from the replies."""

    def __init__(self, config: AIConfig, provider: Optional[AIProvider] = None, renderer: Optional[Renderer] = None):
        self.config = config
        self.provider = provider or create_provider(config)
        self.renderer = renderer or Renderer()

    def format_table_schema(self, table: TableSchema) -> str:
        return self.renderer.render_template(TABLE_SCHEMA_TEMPLATE, table=table, column_flags=column_flags).rstrip()

    def _prompt_context(self, context: GenerationContext) -> dict:
        return {
            'project_name': context.project_name or DEFAULT_PROJECT_NAME,
            'db_type': context.db_type or DEFAULT_DB_TYPE,
            'tables': [self.format_table_schema(table) for table in context.tables],
            'existing_models': context.existing_models,
        }

    def build_dbt_prompt(self, prompt: str, context: GenerationContext) -> str:
        system_prompt = self.renderer.render_template(DBT_SYSTEM_PROMPT, **self._prompt_context(context))
        return f'{system_prompt}\n\nUser Request: {prompt}'

    def build_dagster_prompt(self, prompt: str, context: GenerationContext) -> str:
        system_prompt = self.renderer.render_template(DAGSTER_SYSTEM_PROMPT, **self._prompt_context(context))
        return f'{system_prompt}\n\nUser Request: {prompt}'

    def generate_dbt_model(self, prompt: str, context: Optional[GenerationContext] = None) -> Tuple[str, str]:
        """Generate a dbt model from a natural-language request.

        Args:
            prompt: What the model should do
            context: Project, database and table information for the prompt

        Returns:
            Tuple of (sql, description)

        Raises:
            ProviderError: If the provider fails or the reply has no SQL block
        """
        context = context or GenerationContext()
        logger.info('Generating DBT model with AI...')
        try:
            response = self.provider.generate(self.build_dbt_prompt(prompt, context), context)
            result = parse_response(response, SQL_BLOCK_PATTERN, 'SQL', DEFAULT_DBT_DESCRIPTION)
        except ProviderError:
            logger.error('Failed to generate DBT model')
            raise
        logger.info('DBT model generated successfully')
        return result

    def generate_dagster_asset(self, prompt: str, context: Optional[GenerationContext] = None) -> Tuple[str, str]:
        """Generate a Dagster asset; returns (code, description)."""
        context = context or GenerationContext()
        logger.info('Generating Dagster asset with AI...')
        try:
            response = self.provider.generate(self.build_dagster_prompt(prompt, context), context)
            result = parse_response(response, PYTHON_BLOCK_PATTERN, 'Python code', DEFAULT_DAGSTER_DESCRIPTION)
        except ProviderError:
            logger.error('Failed to generate Dagster asset')
            raise
        logger.info('Dagster asset generated successfully')
        return result

    def explain_code(self, code: str, code_type: str) -> str:
        logger.info('Explaining code with AI...')
        return self.provider.explain(code, code_type)

    def optimize_code(self, code: str, code_type: str) -> str:
        logger.info('Optimizing code with AI...')
        return self.provider.optimize(code, code_type)

    def generate_documentation(self, model_name: str, sql: str) -> str:
        logger.info('Generating documentation with AI...')
        prompt = self.renderer.render_template(DOCUMENTATION_PROMPT, model_name=model_name, sql=sql)
        return self.provider.generate(prompt)


def parse_response(response: str, block_pattern: re.Pattern, block_label: str, default_description: str) -> Tuple[str, str]:
    """Extract the fenced code block and the ``DESCRIPTION:`` line from a reply.

    Raises:
        ProviderError: If the reply contains no matching code block
    """
    code_match = block_pattern.search(response)
    if not code_match:
        raise ProviderError(f'Could not parse {block_label} from AI response')

    description_match = DESCRIPTION_PATTERN.search(response)
    description = description_match.group(1).strip() if description_match else default_description
    return code_match.group(1).strip(), description
