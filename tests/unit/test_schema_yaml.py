"""
Unit tests for the schema.yml reader/writer and model upserts.
"""

import logging

import pytest
import yaml

from dataweave.exceptions import ParseAmbiguousError
from dataweave.models import ColumnRecord, MetadataDocument, ModelRecord
from dataweave.schema_yaml import (
    dump_document,
    format_scalar,
    load_document,
    parse_document,
    parse_scalar,
    save_document,
    upsert_model,
)

STG_USERS_SCHEMA = """\
version: 2

models:
  - name: stg_users
    description: Staged user data with basic cleaning
    columns:
      - name: id
        description: Primary key
        tests:
          - unique
          - not_null
      - name: email
        description: User email address
        tests:
          - unique
          - not_null

"""


@pytest.mark.unit
class TestScalars:
    @pytest.mark.parametrize('value', ['plain', 'Staged user data', 'snake_case_name', 'a-b'])
    def test_plain_scalars_stay_plain(self, value):
        assert format_scalar(value) == value

    @pytest.mark.parametrize(
        'value',
        ['yes', 'null', '123', '1.5', 'key: value', 'ends with:', 'has # hash', '- dash', ' padded', '"q"', ''],
    )
    def test_ambiguous_scalars_are_quoted_and_load_back(self, value):
        formatted = format_scalar(value)

        assert formatted.startswith('"')
        assert yaml.safe_load(f'key: {formatted}')['key'] == value
        assert parse_scalar(formatted) == value

    def test_single_quoted(self):
        assert parse_scalar("'it''s'") == "it's"

    def test_plain_comment_is_dropped(self):
        assert parse_scalar('value # trailing comment') == 'value'

    @pytest.mark.parametrize('text', ['[a, b]', '{a: 1}', '&anchor', '*alias', '|', '>', '!tag x', '"open', "'bad'quote'"])
    def test_unsupported_scalars(self, text):
        with pytest.raises(ValueError):
            parse_scalar(text)


@pytest.mark.unit
class TestDump:
    def test_stg_users_layout(self):
        document = MetadataDocument()
        upsert_model(
            document,
            'stg_users',
            description='Staged user data with basic cleaning',
            columns=[
                ColumnRecord('id', 'Primary key', ['unique', 'not_null']),
                ColumnRecord('email', 'User email address', ['unique', 'not_null']),
            ],
        )

        assert dump_document(document) == STG_USERS_SCHEMA

    def test_empty_document(self):
        text = dump_document(MetadataDocument())

        assert text == 'version: 2\n\nmodels:\n'
        assert yaml.safe_load(text) == {'version': 2, 'models': None}

    def test_output_is_valid_yaml(self):
        document = MetadataDocument(
            models=[
                ModelRecord('a', description='Uses: colons', tests=['unique']),
                ModelRecord('b', columns=[ColumnRecord('c', tests=['not_null'])]),
            ]
        )

        data = yaml.safe_load(dump_document(document))

        assert data['models'] == [
            {'name': 'a', 'description': 'Uses: colons', 'tests': ['unique']},
            {'name': 'b', 'columns': [{'name': 'c', 'tests': ['not_null']}]},
        ]


@pytest.mark.unit
class TestParse:
    def test_round_trip(self):
        document = parse_document(STG_USERS_SCHEMA)

        assert document.model_names() == ['stg_users']
        model = document.models[0]
        assert model.description == 'Staged user data with basic cleaning'
        assert [column.name for column in model.columns] == ['id', 'email']
        assert model.columns[1].tests == ['unique', 'not_null']
        assert dump_document(document) == STG_USERS_SCHEMA

    @pytest.mark.parametrize(
        'description',
        ['line1\rline2', 'line1\u2028line2', 'line1\x85line2', 'a\x0bb', 'a\x0cb', 'multi\nline', 'tab\there'],
    )
    def test_line_breaks_survive_a_round_trip(self, description, tmp_path):
        document = MetadataDocument()
        upsert_model(document, 'm', description=description)

        text = dump_document(document)

        assert text.splitlines() == text.split('\n')[:-1]
        assert parse_document(text).models[0].description == description
        assert yaml.safe_load(text)['models'][0]['description'] == description

        save_document(tmp_path / 'schema.yml', document)
        assert load_document(tmp_path / 'schema.yml').models[0].description == description

    def test_model_level_tests_and_quotes(self):
        text = 'version: 2\nmodels:\n  - name: "123"\n    description: \'Quoted: yes\'\n    tests:\n      - unique\n'

        model = parse_document(text).models[0]

        assert model.name == '123'
        assert model.description == 'Quoted: yes'
        assert model.tests == ['unique']

    def test_comments_and_blank_lines_are_ignored(self):
        text = '# header\nversion: 2\n\nmodels:\n  # first\n  - name: a\n\n  - name: b\n'
        assert parse_document(text).model_names() == ['a', 'b']

    @pytest.mark.parametrize(
        'text',
        [
            'version: 2\nsources:\n  - name: raw\n',
            'version: 2\nmodels:\n  - name: a\n    config:\n      materialized: table\n',
            'version: 2\nmodels:\n  - name: a\n    description: [x]\n',
            'version: 2\nmodels:\n  - name: a\n    tests:\n      - relationships:\n',
            'version: 2\nmodels:\n   - name: a\n',
            'version: 2\nmodels:\n  - name: a\n    description: |\n      multi\n',
            'version: two\n',
        ],
    )
    def test_strict_rejects_unsupported_content(self, text):
        with pytest.raises(ParseAmbiguousError):
            parse_document(text)

    def test_error_reports_line(self):
        with pytest.raises(ParseAmbiguousError) as exc_info:
            parse_document('version: 2\nmodels:\n  - name: a\n    meta:\n')

        assert exc_info.value.line_number == 4
        assert exc_info.value.line == '    meta:'
        assert 'line 4' in str(exc_info.value)

    def test_duplicate_model_is_rejected_in_strict_mode(self):
        text = 'version: 2\nmodels:\n  - name: a1\n  - name: a1\n'

        with pytest.raises(ParseAmbiguousError, match='duplicate'):
            parse_document(text)

    def test_duplicate_model_merges_in_lenient_mode(self):
        text = 'version: 2\nmodels:\n  - name: a1\n    description: first\n  - name: a1\n    tests:\n      - unique\n'

        document = parse_document(text, strict=False)

        assert document.model_names() == ['a1']
        assert document.models[0].description == 'first'
        assert document.models[0].tests == ['unique']

    def test_lenient_mode_skips_unknown_sections(self, caplog):
        text = (
            'version: 2\n'
            'sources:\n'
            '  - name: raw\n'
            'models:\n'
            '  - name: a\n'
            '    config:\n'
            '      materialized: table\n'
            '    description: kept\n'
        )

        with caplog.at_level(logging.DEBUG, logger='dataweave.schema_yaml'):
            document = parse_document(text, strict=False)

        assert document.model_names() == ['a']
        assert document.models[0].description == 'kept'
        assert 'Skipping line' in caplog.text


@pytest.mark.unit
class TestUpsert:
    def test_adds_new_model_at_end(self):
        document = MetadataDocument(models=[ModelRecord('a')])

        upsert_model(document, 'b', description='B')

        assert document.model_names() == ['a', 'b']

    def test_update_keeps_position_and_unset_fields(self):
        document = MetadataDocument(
            models=[
                ModelRecord('a'),
                ModelRecord('b', description='old', tests=['unique'], columns=[ColumnRecord('id', 'Primary key')]),
                ModelRecord('c'),
            ]
        )

        upsert_model(document, 'b', description='new')

        model = document.models[1]
        assert document.model_names() == ['a', 'b', 'c']
        assert model.description == 'new'
        assert model.tests == ['unique']
        assert model.columns == [ColumnRecord('id', 'Primary key')]

    def test_columns_are_replaced_wholesale(self):
        document = MetadataDocument(models=[ModelRecord('a', columns=[ColumnRecord('x'), ColumnRecord('y')])])
        new_columns = [ColumnRecord('z', tests=['not_null'])]

        upsert_model(document, 'a', columns=new_columns)

        assert document.models[0].columns == [ColumnRecord('z', tests=['not_null'])]
        assert document.models[0].columns[0] is not new_columns[0]

    def test_empty_lists_do_not_clear(self):
        document = MetadataDocument(models=[ModelRecord('a', tests=['unique'], columns=[ColumnRecord('x')])])

        upsert_model(document, 'a', columns=[], tests=[])

        assert document.models[0].tests == ['unique']
        assert document.models[0].columns == [ColumnRecord('x')]


@pytest.mark.unit
class TestFiles:
    def test_missing_file_is_empty_document(self, tmp_path):
        document = load_document(tmp_path / 'schema.yml')
        assert document.models == []
        assert document.version == 2

    def test_save_and_load(self, tmp_path):
        path = tmp_path / 'models' / 'schema.yml'
        document = MetadataDocument(models=[ModelRecord('a', description='A model')])

        save_document(path, document)

        assert load_document(path) == document

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / 'schema.yml'
        path.write_bytes(b'version: 2\nmodels:\n  - name: \xff\n')

        with pytest.raises(ParseAmbiguousError):
            load_document(path)
        assert load_document(path, strict=False) == MetadataDocument()
