"""
Unit tests for utility helpers.
"""

import gzip
import json
import math

import pytest

from batch_exporter.utils import INT_SENTINEL, coerce_int, generate_id, iter_ndjson


@pytest.mark.parametrize(
    "value,expected",
    [
        (42, 42),
        (-3, -3),
        (3.99, 3),
        (-2.5, -2),
        ("17", 17),
        ("  8px", 8),
        ("-12.9", -12),
        (b"5", 5),
        ("abc", INT_SENTINEL),
        ("", INT_SENTINEL),
        (None, INT_SENTINEL),
        (True, INT_SENTINEL),
        (math.nan, INT_SENTINEL),
        (math.inf, INT_SENTINEL),
        ([1], INT_SENTINEL),
    ],
)
def test_coerce_int(value, expected):
    assert coerce_int(value) == expected


def test_coerce_int_custom_default():
    assert coerce_int("nope", default=0) == 0


def test_generate_id_is_unique():
    assert len({generate_id() for _ in range(50)}) == 50


def test_iter_ndjson_plain(tmp_path):
    p = tmp_path / "rows.ndjson"
    p.write_text('{"a": 1}\n\n{"a": 2}\n', encoding="utf-8")
    assert list(iter_ndjson(str(p))) == [{"a": 1}, {"a": 2}]


def test_iter_ndjson_gzip(tmp_path):
    p = tmp_path / "rows.ndjson.gz"
    with gzip.open(p, "wt", encoding="utf-8") as f:
        for i in range(3):
            f.write(json.dumps({"i": i}) + "\n")
    assert [o["i"] for o in iter_ndjson(str(p))] == [0, 1, 2]


def test_iter_ndjson_reports_bad_line(tmp_path):
    p = tmp_path / "bad.ndjson"
    p.write_text('{"a": 1}\nnot json\n', encoding="utf-8")
    with pytest.raises(ValueError, match=":2: invalid JSON"):
        list(iter_ndjson(str(p)))
