from __future__ import annotations

import pathlib
import sys
import textwrap

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pd = pytest.importorskip("pandas")
pytest.importorskip("yaml")

from gridview.engine.errors import ConfigError
from gridview.engine.loader import TableDefinition, load_definition, load_rows
from gridview.engine.models import ColumnType

EXAMPLE_CONFIG = pathlib.Path(__file__).resolve().parents[1] / "gridview" / "config_example.yaml"


def test_example_definition_loads():
    definition = load_definition(EXAMPLE_CONFIG)

    assert definition.title == "cashflow"
    assert definition.pinned == ["cashflowNumber"]
    assert definition.group_total_fields == ("amount", "extendedAmount")
    assert definition.columns[0].width == 150
    assert pathlib.Path(definition.data["path"]).is_absolute()

    rows = load_rows(definition)

    assert len(rows) == 8
    assert rows[3]["extendedAmount"] is None
    assert rows[6]["counterpart"] is None
    assert rows[0]["extendedAmount"] == 78500


def test_relative_paths_resolve_against_the_config(tmp_path):
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "rows.json").write_text(
        '[{"id": "a", "qty": "3"}, {"id": "b", "qty": null}]', encoding="utf-8"
    )
    config = tmp_path / "table.yaml"
    config.write_text(
        textwrap.dedent(
            """
            title: trades
            data: {path: data/rows.json, kind: json}
            storage: {kind: file, path: state}
            columns:
              - {key: id, title: Id}
              - {key: qty, title: Qty, type: number}
            """
        ),
        encoding="utf-8",
    )

    definition = load_definition(config)
    rows = load_rows(definition)

    assert definition.storage["path"] == str((tmp_path / "state").resolve())
    assert [row["id"] for row in rows] == ["a", "b"]
    assert rows[0]["qty"] == 3
    assert rows[1]["qty"] is None


@pytest.mark.parametrize(
    "cfg",
    [
        {"columns": []},
        {"columns": [{"title": "No key"}]},
        {"columns": [{"key": "a"}, {"key": "a"}]},
        {"columns": [{"key": "a", "type": "currency"}]},
        {"columns": [{"key": "a", "width": "wide"}]},
        {"columns": [{"key": "a"}], "pinned": ["b"]},
    ],
)
def test_invalid_definitions_raise_config_error(cfg):
    with pytest.raises(ConfigError):
        TableDefinition.from_config(cfg)


def test_defaults_when_optional_sections_are_missing():
    definition = TableDefinition.from_config({"columns": [{"key": "amount", "type": "NUMBER"}]})

    assert definition.title == "table"
    assert definition.id_field == "id"
    assert definition.columns[0].title == "amount"
    assert definition.columns[0].type is ColumnType.NUMBER
    assert definition.features.enable_grouping is True


def test_unparsable_yaml_raises_config_error(tmp_path):
    config = tmp_path / "broken.yaml"
    config.write_text("columns: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_definition(config)


def test_missing_data_file(tmp_path):
    definition = TableDefinition.from_config(
        {"columns": [{"key": "a"}], "data": {"path": str(tmp_path / "nope.csv")}}
    )

    with pytest.raises(FileNotFoundError):
        load_rows(definition)
