"""
csv_parser.py - Quoted-Field-Aware CSV Reader

Parses the small static CSV resources bundled with the dashboard (indicator
tables, coordinate tables, crosswalks) into plain row dictionaries keyed by
the header as written. Values are strings, trimmed; missing trailing fields
come back as "".

The reader is intentionally line-oriented: a quoted field never spans lines.
"""

from pathlib import Path
from typing import Dict, List, Union

from loguru import logger

Row = Dict[str, str]


def split_csv_line(line: str) -> List[str]:
    """Split one CSV line into fields, honouring double-quoted sections.

    Inside quotes a doubled quote ("") is a literal quote character and
    commas do not separate fields. A line with N separators always yields
    N + 1 fields.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    i = 0
    while i < len(line):
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < len(line) and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch == ",":
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1

    fields.append("".join(current))
    return fields


def parse_csv_text(text: str) -> List[Row]:
    """Parse CSV text into a list of rows keyed by the header line.

    Blank lines are skipped. A blank header line still produces one header
    (the empty string), so data rows then carry only that key.
    """
    if not text:
        return []

    lines = text.replace("\r\n", "\n").split("\n")
    headers = split_csv_line(lines[0])

    rows: List[Row] = []
    for line in lines[1:]:
        if not line.strip():
            continue
        fields = split_csv_line(line)
        row: Row = {}
        for idx, header in enumerate(headers):
            row[header] = (fields[idx] if idx < len(fields) else "").strip()
        rows.append(row)

    return rows


def read_csv_file(path: Union[str, Path]) -> List[Row]:
    """Read and parse a UTF-8 CSV file (a byte order mark is dropped)."""
    path = Path(path)
    text = path.read_text(encoding="utf-8-sig")
    rows = parse_csv_text(text)
    logger.debug(f"  📄 Parsed {len(rows):,} rows from {path.name}")
    return rows
