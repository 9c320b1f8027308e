"""Reader and writer for dbt ``schema.yml`` model metadata.

Only the subset of YAML this package writes is supported:

    version: 2

    models:
      - name: stg_users
        description: Staged user data
        tests:
          - unique
        columns:
          - name: id
            description: Primary key
            tests:
              - not_null

Indentation is two spaces per level. No anchors, flow collections or block
scalars. In strict mode (the default) anything else raises
ParseAmbiguousError; lenient mode skips unrecognised lines instead.
"""

import json
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence

from dataweave.exceptions import ParseAmbiguousError
from dataweave.fileio import read_text, write_text
from dataweave.models import ColumnRecord, MetadataDocument, ModelRecord

logger = logging.getLogger(__name__)

KEY_VALUE_PATTERN = re.compile(r'^(?P<key>[A-Za-z_][\w-]*):(?:\s+(?P<value>.*)|\s*)$')
LIST_ITEM_PATTERN = re.compile(r'^-\s+(?P<item>.*)$')
NUMBER_PATTERN = re.compile(r'^[-+]?(\.\d|\d)[\d_.eE+-]*$')

RESERVED_SCALARS = {'', '~', 'null', 'true', 'false', 'yes', 'no', 'on', 'off', 'y', 'n'}
INDICATOR_CHARS = '-?:,[]{}#&*!|>\'"%@`'
# Flow collections, anchors, aliases, tags and block scalars
UNSUPPORTED_PLAIN_STARTS = '[]{}&*!|>%@`#'

MODEL_INDENT = 2
MODEL_FIELD_INDENT = 4
COLUMN_INDENT = 6
COLUMN_FIELD_INDENT = 8
COLUMN_TEST_INDENT = 10


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def quote_scalar(value: str) -> str:
    """Double-quote ``value``, escaping every character that is not printable."""
    quoted = json.dumps(value, ensure_ascii=False)
    return ''.join(char if char.isprintable() else json.dumps(char)[1:-1] for char in quoted)


def format_scalar(value: str) -> str:
    """Render a scalar, double-quoting it when plain YAML would misread it."""
    value = str(value)
    needs_quotes = (
        value.lower() in RESERVED_SCALARS
        or value != value.strip()
        or value[0] in INDICATOR_CHARS
        or ': ' in value
        or value.endswith(':')
        or ' #' in value
        or not value.isprintable()
        or NUMBER_PATTERN.match(value) is not None
    )
    return quote_scalar(value) if needs_quotes else value


def parse_scalar(text: str) -> str:
    """Inverse of :func:`format_scalar`; also accepts single-quoted scalars.

    Raises:
        ValueError: If a quoted scalar is malformed
    """
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return json.loads(text)
    if len(text) >= 2 and text[0] == text[-1] == "'":
        inner = text[1:-1]
        if re.search(r"(?<!')'(?!')", inner.replace("''", '')):
            raise ValueError(f'Malformed single-quoted scalar: {text}')
        return inner.replace("''", "'")
    if text[:1] in ('"', "'"):
        raise ValueError(f'Unterminated quoted scalar: {text}')
    if text[:1] in UNSUPPORTED_PLAIN_STARTS:
        raise ValueError(f'Unsupported YAML construct: {text}')
    # Plain scalars end at a comment
    if ' #' in text:
        text = text.split(' #', 1)[0].rstrip()
    return text


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


class _DocumentParser:
    """Line scanner for the restricted schema dialect."""

    def __init__(self, strict: bool):
        self.strict = strict
        self.document = MetadataDocument()
        self.in_models = False
        self.model: Optional[ModelRecord] = None
        self.model_section: Optional[str] = None  # 'tests' or 'columns'
        self.column: Optional[ColumnRecord] = None
        self.column_section: Optional[str] = None  # 'tests'
        self.line_number = 0
        self.line = ''

    def reject(self, reason: str) -> None:
        if self.strict:
            raise ParseAmbiguousError(reason, self.line_number, self.line)
        logger.debug(f'Skipping line {self.line_number} ({reason}): {self.line!r}')

    def scalar(self, text: str) -> Optional[str]:
        try:
            return parse_scalar(text)
        except ValueError as e:
            self.reject(str(e))
            return None

    def parse(self, text: str) -> MetadataDocument:
        for line_number, line in enumerate(text.splitlines(), 1):
            self.line_number, self.line = line_number, line
            stripped = line.strip()
            if not stripped or stripped.startswith('#'):
                continue
            if '\t' in self.line[: len(self.line) - len(self.line.lstrip())]:
                self.reject('tab indentation')
                continue

            indent = len(self.line) - len(self.line.lstrip(' '))
            handler = {
                0: self.top_level,
                MODEL_INDENT: self.model_entry,
                MODEL_FIELD_INDENT: self.model_field,
                COLUMN_INDENT: self.model_list_item,
                COLUMN_FIELD_INDENT: self.column_field,
                COLUMN_TEST_INDENT: self.column_test,
            }.get(indent)
            if handler is None:
                self.reject(f'unexpected indentation ({indent} spaces)')
                continue
            handler(stripped)
        return self.document

    def top_level(self, body: str) -> None:
        match = KEY_VALUE_PATTERN.match(body)
        key = match.group('key') if match else None
        value = match.group('value') if match else None

        self.model = None
        self.column = None
        self.in_models = False
        if key == 'version' and value:
            try:
                self.document.version = int(value)
            except ValueError:
                self.reject('version must be an integer')
        elif key == 'models' and not value:
            self.in_models = True
        else:
            self.reject('unsupported top-level key')

    def model_entry(self, body: str) -> None:
        item = LIST_ITEM_PATTERN.match(body)
        field = KEY_VALUE_PATTERN.match(item.group('item')) if item else None
        if not self.in_models or not field or field.group('key') != 'name' or not field.group('value'):
            self.reject('expected "- name: <model>" in models list')
            return

        name = self.scalar(field.group('value'))
        if name is None:
            return
        self.model_section = None
        self.column = None
        self.column_section = None

        existing = self.document.find_model(name)
        if existing is not None:
            self.reject(f'duplicate model {name!r}')
            self.model = existing
            return
        self.model = ModelRecord(name=name)
        self.document.models.append(self.model)

    def model_field(self, body: str) -> None:
        match = KEY_VALUE_PATTERN.match(body)
        if self.model is None or not match:
            self.reject('expected a model field')
            return

        key, value = match.group('key'), match.group('value')
        self.column = None
        if key == 'description':
            self.model_section = None
            self.model.description = self.scalar(value) if value else None
        elif key in ('tests', 'columns') and not value:
            self.model_section = key
        else:
            self.model_section = None
            self.reject(f'unsupported model field {key!r}')

    def model_list_item(self, body: str) -> None:
        item = LIST_ITEM_PATTERN.match(body)
        if self.model is None or not item:
            self.reject('expected a list item')
            return

        if self.model_section == 'tests':
            if KEY_VALUE_PATTERN.match(item.group('item')):
                self.reject('structured tests are not supported')
                return
            test = self.scalar(item.group('item'))
            if test is not None:
                self.model.tests.append(test)
            return

        field = KEY_VALUE_PATTERN.match(item.group('item'))
        if self.model_section != 'columns' or not field or field.group('key') != 'name' or not field.group('value'):
            self.reject('expected "- name: <column>" in columns list')
            return

        name = self.scalar(field.group('value'))
        if name is None:
            return
        self.column = ColumnRecord(name=name)
        self.column_section = None
        self.model.columns.append(self.column)

    def column_field(self, body: str) -> None:
        match = KEY_VALUE_PATTERN.match(body)
        if self.column is None or not match:
            self.reject('expected a column field')
            return

        key, value = match.group('key'), match.group('value')
        if key == 'description':
            self.column_section = None
            self.column.description = self.scalar(value) if value else None
        elif key == 'tests' and not value:
            self.column_section = 'tests'
        else:
            self.column_section = None
            self.reject(f'unsupported column field {key!r}')

    def column_test(self, body: str) -> None:
        item = LIST_ITEM_PATTERN.match(body)
        if self.column is None or self.column_section != 'tests' or not item:
            self.reject('expected a column test')
            return
        if KEY_VALUE_PATTERN.match(item.group('item')):
            self.reject('structured tests are not supported')
            return
        test = self.scalar(item.group('item'))
        if test is not None:
            self.column.tests.append(test)


def parse_document(text: str, strict: bool = True) -> MetadataDocument:
    """Parse schema text into a MetadataDocument.

    Args:
        text: File content
        strict: Raise on content outside the dialect instead of skipping it

    Returns:
        Parsed document

    Raises:
        ParseAmbiguousError: In strict mode, on the first unsupported line
    """
    return _DocumentParser(strict).parse(text)


def load_document(path: Path, strict: bool = True) -> MetadataDocument:
    """Read a schema file; a missing file is an empty document.

    Raises:
        ParseAmbiguousError: In strict mode, if the file is outside the dialect
    """
    try:
        text = read_text(path)
    except UnicodeDecodeError as e:
        if strict:
            raise ParseAmbiguousError(f'{path} is not valid UTF-8: {e}') from e
        logger.warning(f'Could not decode {path}, treating it as empty: {e}')
        return MetadataDocument()

    if text is None:
        return MetadataDocument()
    return parse_document(text, strict=strict)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _dump_tests(lines: List[str], tests: Sequence[str], indent: int) -> None:
    if not tests:
        return
    pad = ' ' * indent
    lines.append(f'{pad}tests:')
    for test in tests:
        lines.append(f'{pad}  - {format_scalar(test)}')


def dump_document(document: MetadataDocument) -> str:
    """Serialize a document deterministically."""
    lines = [f'version: {document.version}', '', 'models:']
    for model in document.models:
        lines.append(f'  - name: {format_scalar(model.name)}')
        if model.description:
            lines.append(f'    description: {format_scalar(model.description)}')
        _dump_tests(lines, model.tests, MODEL_FIELD_INDENT)

        if model.columns:
            lines.append('    columns:')
            for column in model.columns:
                lines.append(f'      - name: {format_scalar(column.name)}')
                if column.description:
                    lines.append(f'        description: {format_scalar(column.description)}')
                _dump_tests(lines, column.tests, COLUMN_FIELD_INDENT)

        lines.append('')
    return '\n'.join(lines) + '\n'


def save_document(path: Path, document: MetadataDocument) -> None:
    write_text(path, dump_document(document))


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def upsert_model(
    document: MetadataDocument,
    name: str,
    description: Optional[str] = None,
    columns: Optional[Sequence[ColumnRecord]] = None,
    tests: Optional[Sequence[str]] = None,
) -> ModelRecord:
    """Add or update the record for model ``name``.

    Only the fields supplied are changed: description when given, tests and
    columns when non-empty. A new columns list replaces the old one wholesale.

    Returns:
        The record that was added or updated
    """
    model = document.find_model(name)
    if model is None:
        model = ModelRecord(name=name)
        document.models.append(model)

    if description:
        model.description = description
    if tests:
        model.tests = list(tests)
    if columns:
        model.columns = [
            ColumnRecord(name=column.name, description=column.description, tests=list(column.tests))
            for column in columns
        ]
    return model
