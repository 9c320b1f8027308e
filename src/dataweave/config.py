"""Project configuration for dataweave (``.dataweave/config.json``)."""

import json
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dataweave.exceptions import ConfigError, ProjectNotFoundError
from dataweave.fileio import write_text

DEFAULT_PROJECT_VERSION = '1.0.0'


class ProviderKind(str, Enum):
    """Selectable AI backends."""

    OPENAI = 'openai'
    ANTHROPIC = 'anthropic'
    LOCAL = 'local'


class AIConfig(BaseModel):
    """Settings for the AI provider."""

    model_config = ConfigDict(extra='allow')

    enabled: bool = Field(True, description='Whether AI commands are enabled')
    provider: ProviderKind = Field(ProviderKind.OPENAI, description='AI backend to use')
    api_key: Optional[str] = Field(None, description='API key, usually taken from the environment')
    model: str = Field('gpt-4', description='Model identifier')
    temperature: float = Field(0.7, ge=0.0, le=2.0, description='Sampling temperature')
    max_tokens: int = Field(2000, gt=0, description='Maximum tokens per response')


class DbtSettings(BaseModel):
    model_config = ConfigDict(extra='allow')

    enabled: bool = True
    profile: str = 'dataweave'
    target: str = 'dev'
    lenient_schema: bool = Field(
        False, description='Skip schema.yml lines outside the supported dialect instead of failing'
    )


class DagsterSettings(BaseModel):
    model_config = ConfigDict(extra='allow')

    enabled: bool = True
    workspace: str = './data/dagster'


class SupabaseSettings(BaseModel):
    model_config = ConfigDict(extra='allow')

    enabled: bool = True
    project_id: str = ''
    api_url: str = ''
    anon_key: str = ''


class DataweaveConfig(BaseModel):
    """Schema of ``.dataweave/config.json``."""

    model_config = ConfigDict(extra='allow')

    name: str = Field(..., description='Project name')
    version: str = Field(DEFAULT_PROJECT_VERSION, description='Project version')
    dbt: DbtSettings = Field(default_factory=DbtSettings)
    dagster: DagsterSettings = Field(default_factory=DagsterSettings)
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    ai: AIConfig = Field(default_factory=AIConfig)


def load_config(config_path: Path) -> DataweaveConfig:
    """Load the project configuration.

    Args:
        config_path: Path to ``.dataweave/config.json``

    Returns:
        Parsed configuration

    Raises:
        ProjectNotFoundError: If the config file does not exist
        ConfigError: If the file is not valid JSON or does not match the schema
    """
    if not config_path.exists():
        raise ProjectNotFoundError('No dataweave project found. Run "dataweave init" first.')

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return DataweaveConfig.model_validate(data)
    except json.JSONDecodeError as e:
        raise ConfigError(f'Invalid JSON in {config_path}: {e}') from e
    except UnicodeDecodeError as e:
        raise ConfigError(f'{config_path} is not valid UTF-8: {e}') from e
    except ValidationError as e:
        raise ConfigError(f'Invalid dataweave config {config_path}: {e}') from e
    except OSError as e:
        raise ConfigError(f'Failed to load dataweave config: {e}') from e


def save_config(config_path: Path, config: DataweaveConfig) -> None:
    write_text(config_path, json.dumps(config.model_dump(mode='json', exclude={'ai': {'api_key'}}), indent=2) + '\n')
