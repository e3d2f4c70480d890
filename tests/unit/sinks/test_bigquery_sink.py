"""
Unit tests for BigQuerySink against a mocked client.
"""

from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gexc

from batch_exporter.errors import SinkError, SinkInsertError, is_conflict
from batch_exporter.models import BufferedRow, InsertOptions
from batch_exporter.schema import DEFAULT_SCHEMA
from batch_exporter.sinks.bigquery import BigQuerySink, to_bigquery_schema


@pytest.fixture
def client():
    c = MagicMock()
    c.project = "proj"
    c.insert_rows_json.return_value = []
    return c


@pytest.fixture
def bq(client):
    return BigQuerySink("metrics", "lighthouse", client=client)


def test_ids_are_fully_qualified(bq):
    assert bq.dataset_id == "proj.metrics"
    assert bq.table_id == "proj.metrics.lighthouse"


def test_explicit_project_wins(client):
    sink = BigQuerySink("ds", "t", project_id="other", client=client)
    assert sink.table_id == "other.ds.t"


@pytest.mark.asyncio
async def test_exists_checks(bq, client):
    assert await bq.namespace_exists() is True
    client.get_table.side_effect = gexc.NotFound("no table")
    assert await bq.table_exists() is False


@pytest.mark.asyncio
async def test_exists_maps_other_errors(bq, client):
    client.get_dataset.side_effect = gexc.Forbidden("denied")
    with pytest.raises(SinkError) as exc_info:
        await bq.namespace_exists()
    assert exc_info.value.code == 403


@pytest.mark.asyncio
async def test_create_table_uses_schema_and_day_partitioning(bq, client):
    await bq.create_table(DEFAULT_SCHEMA)

    table = client.create_table.call_args.args[0]
    assert [f.name for f in table.schema] == DEFAULT_SCHEMA.field_names
    assert table.time_partitioning.type_ == "DAY"


@pytest.mark.asyncio
async def test_create_conflict_is_409(bq, client):
    client.create_dataset.side_effect = gexc.Conflict("Already Exists: Dataset proj:metrics")
    with pytest.raises(SinkError) as exc_info:
        await bq.create_namespace()
    assert is_conflict(exc_info.value)


@pytest.mark.asyncio
async def test_insert_sends_tokens_as_row_ids(bq, client):
    rows = [BufferedRow.wrap("id-1", {"score": 1}), BufferedRow.wrap("id-2", {"score": 2})]

    await bq.insert_rows(rows, InsertOptions(ignore_unknown_values=True))

    args, kwargs = client.insert_rows_json.call_args
    assert args == ("proj.metrics.lighthouse", [{"score": 1}, {"score": 2}])
    assert kwargs["row_ids"] == ["id-1", "id-2"]
    assert kwargs["ignore_unknown_values"] is True
    assert kwargs["skip_invalid_rows"] is False


@pytest.mark.asyncio
async def test_insert_row_errors_raise(bq, client):
    client.insert_rows_json.return_value = [{"index": 0, "errors": [{"reason": "invalid"}]}]
    with pytest.raises(SinkInsertError) as exc_info:
        await bq.insert_rows([BufferedRow.wrap("id-1", {"score": "x"})], InsertOptions())
    assert exc_info.value.errors[0]["index"] == 0


def test_to_bigquery_schema():
    fields = to_bigquery_schema(DEFAULT_SCHEMA)
    assert [(f.name, f.field_type) for f in fields][:2] == [("score", "INTEGER"), ("raw_value", "INTEGER")]
