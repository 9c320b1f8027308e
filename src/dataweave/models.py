"""Data models for dataweave."""

import keyword
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dataweave.exceptions import InvalidArgumentError


class ArtifactKind(str, Enum):
    """Kinds of generated artifacts."""

    MODEL = 'model'
    ASSET = 'asset'
    JOB = 'job'
    SCHEDULED_TRIGGER = 'schedule'

    @property
    def is_python(self) -> bool:
        return self is not ArtifactKind.MODEL


@dataclass(frozen=True)
class ArtifactDescriptor:
    """Everything needed to render one generated file.

    Parameters are free-form and depend on the kind: ``sql`` / ``materialized`` /
    ``tags`` for models, ``code`` / ``dependencies`` / ``compute_kind`` and friends
    for assets, ``assets`` for jobs, ``target`` / ``cron`` / ``target_is_job`` for
    scheduled triggers.
    """

    name: str
    kind: ArtifactKind
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        validate_artifact_name(self.name, self.kind)

    def get(self, key: str, default: Any = None) -> Any:
        value = self.parameters.get(key)
        return default if value is None else value


def is_python_identifier(name: str) -> bool:
    """True if ``name`` can be used as a module and function name."""
    return name.isidentifier() and not keyword.iskeyword(name)


def validate_artifact_name(name: str, kind: ArtifactKind) -> None:
    """Reject names that cannot become a file name (or Python symbol).

    Raises:
        InvalidArgumentError: If the name is empty or unusable for the kind
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError(f'{kind.value} name must not be empty')
    if name != name.strip() or '/' in name or '\\' in name or name in ('.', '..'):
        raise InvalidArgumentError(f'Invalid {kind.value} name: {name!r}')
    if kind.is_python and not is_python_identifier(name):
        raise InvalidArgumentError(f'{kind.value} name must be a valid Python identifier: {name!r}')


@dataclass(frozen=True)
class Destination:
    """Where a generated file goes."""

    directory: Path
    file_name: str

    @property
    def path(self) -> Path:
        return self.directory / self.file_name


@dataclass
class ColumnRecord:
    """A documented column of a model."""

    name: str
    description: Optional[str] = None
    tests: List[str] = field(default_factory=list)


@dataclass
class ModelRecord:
    """Metadata for a single model in a schema document."""

    name: str
    description: Optional[str] = None
    tests: List[str] = field(default_factory=list)
    columns: List[ColumnRecord] = field(default_factory=list)


@dataclass
class MetadataDocument:
    """An ordered collection of model records (a ``schema.yml`` file)."""

    version: int = 2
    models: List[ModelRecord] = field(default_factory=list)

    def find_model(self, name: str) -> Optional[ModelRecord]:
        for model in self.models:
            if model.name == name:
                return model
        return None

    def model_names(self) -> List[str]:
        return [model.name for model in self.models]
