"""Output rendering for e3db-cli record listings."""

from __future__ import annotations

import json
from typing import Iterable

from e3db_sdk.models import Record

RECORD_ID_WIDTH = 40


def record_to_json(record: Record, *, prefix: str = "") -> str:
    encoded = json.dumps(record.model_dump(mode="json"), indent=2)
    if not prefix:
        return encoded
    return "\n".join(prefix + line for line in encoded.splitlines())


def format_table_row(record: Record) -> str:
    return f"{record.meta.record_id or '':<{RECORD_ID_WIDTH}} {record.meta.type}"


def render_records(records: Iterable[Record], *, as_json: bool, stdout) -> int:
    """Write records as they are pulled from ``records`` and return the count.

    JSON mode writes a single array whose brackets and separators are emitted
    around each element as it arrives. An exception raised by ``records``
    propagates with the array left open.
    """
    count = 0
    for record in records:
        if as_json:
            stdout.write("[\n" if count == 0 else ",\n")
            stdout.write(record_to_json(record, prefix="  "))
        else:
            stdout.write(format_table_row(record) + "\n")
        stdout.flush()
        count += 1

    if as_json:
        stdout.write("[\n]\n" if count == 0 else "\n]\n")
        stdout.flush()
    return count
