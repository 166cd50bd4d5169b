"""Tests for the quoted-field CSV reader."""

import pytest

from processing.csv_parser import parse_csv_text, read_csv_file, split_csv_line


@pytest.mark.parametrize(
    "line, expected",
    [
        ("a,b,c", ["a", "b", "c"]),
        ('"a,b",c', ["a,b", "c"]),
        ('"a""b",c', ['a"b', "c"]),
        ("a,,c", ["a", "", "c"]),
        ("a,b,", ["a", "b", ""]),
        ("", [""]),
    ],
)
def test_split_csv_line(line, expected):
    assert split_csv_line(line) == expected


def test_field_count_is_separators_plus_one():
    line = 'x,"y, z",,"q"""'
    assert len(split_csv_line(line)) == 4


def test_rows_have_every_header_key():
    text = "area_name,sdg,sdg_lq\nBoise City,SDG-01,2.5\nAnchorage\n"
    rows = parse_csv_text(text)

    assert len(rows) == 2
    assert all(set(row) == {"area_name", "sdg", "sdg_lq"} for row in rows)
    assert rows[1] == {"area_name": "Anchorage", "sdg": "", "sdg_lq": ""}


def test_quoted_names_and_trimming():
    text = 'area_name, sdg_lq\n"Anchorage, AK" ,  1.23 \n'
    rows = parse_csv_text(text)

    assert rows == [{"area_name": "Anchorage, AK", " sdg_lq": "1.23"}]


def test_blank_lines_and_crlf_are_skipped():
    text = "a,b\r\n1,2\r\n\r\n   \r\n3,4\r\n"
    assert parse_csv_text(text) == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]


def test_extra_fields_are_ignored():
    assert parse_csv_text("a\n1,2,3\n") == [{"a": "1"}]


def test_empty_text_yields_no_rows():
    assert parse_csv_text("") == []


def test_header_only_yields_no_rows():
    assert parse_csv_text("a,b\n") == []


def test_blank_header_produces_single_empty_key():
    assert parse_csv_text("\nx,y\n") == [{"": "x"}]


def test_read_csv_file_drops_byte_order_mark(tmp_path):
    path = tmp_path / "metros.csv"
    path.write_text("\ufeffmetro,lat\nAnchorage,61.2\n", encoding="utf-8")

    assert read_csv_file(path) == [{"metro": "Anchorage", "lat": "61.2"}]
