"""Batch encoders for streamed result chunks."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from typing import Any

from sqlwarden.core.types import ExecutionContext


def _csv_writer(buffer: io.StringIO) -> Any:
    # QUOTE_MINIMAL quotes fields holding a comma, a quote or a line break
    # and doubles embedded quotes. None is written as an empty field.
    return csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)


def batch_to_csv(batch: Sequence[dict[str, Any]], context: ExecutionContext) -> str:
    """Encode a batch of rows as CSV.

    The header row is written only for the first batch of an export;
    ``context.csv_header_added`` records that it was emitted. Every row,
    including the last, ends with a newline.

    Args:
        batch: Rows to encode. Field order follows the first row's keys.
        context: Export context shared by every batch of one export

    Returns:
        CSV text for the batch
    """
    if not batch:
        return ""

    headers = list(batch[0].keys())
    buffer = io.StringIO()
    writer = _csv_writer(buffer)

    if not context.csv_header_added:
        writer.writerow(headers)
        context.csv_header_added = True

    for row in batch:
        fields = [row.get(header) for header in headers]
        if len(fields) == 1 and fields[0] in (None, ""):
            # csv.writer quotes a lone empty field; a blank line is wanted here
            buffer.write("\n")
        else:
            writer.writerow(fields)

    return buffer.getvalue()


def batch_to_json(batch: Sequence[dict[str, Any]], context: ExecutionContext) -> str:
    """Encode a batch of rows as a JSON array.

    Compact unless ``context.pretty_print`` is set. Values JSON cannot
    represent natively (datetimes, decimals, UUIDs) are written as strings.
    """
    if context.pretty_print:
        return json.dumps(list(batch), default=str, indent=2)
    return json.dumps(list(batch), default=str, separators=(",", ":"))


def encoded_size(data: list[dict[str, Any]] | str) -> int:
    """Byte length of a chunk payload in its encoded form."""
    if isinstance(data, str):
        return len(data.encode("utf-8"))
    return len(json.dumps(data, default=str, separators=(",", ":")).encode("utf-8"))
