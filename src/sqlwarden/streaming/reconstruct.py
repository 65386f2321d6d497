"""Safe reconstruction of a full result from streamed chunks.

JSON chunk payloads may come from outside this process, so string payloads
are parsed defensively: size-capped before parsing, parse errors reported
explicitly, prototype-pollution keys rejected, and only arrays accepted.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from sqlwarden.core.types import Chunk, OutputFormat
from sqlwarden.exceptions import ReconstructionSecurityError

DANGEROUS_KEYS = frozenset({"__proto__", "constructor", "prototype"})

DEFAULT_MAX_JSON_CHUNK_SIZE = 10 * 1024 * 1024


def _chunk_payload(chunk: Chunk | Mapping[str, Any]) -> tuple[Any, int | None]:
    if isinstance(chunk, Chunk):
        return chunk.data, chunk.chunk_number
    return chunk.get("data"), chunk.get("chunk_number")


def find_dangerous_key(value: Any) -> str | None:
    """Walk every object key in a parsed JSON value.

    Iterative, so deeply nested payloads cannot exhaust the call stack.

    Returns:
        The first dangerous key found, or None
    """
    stack = [value]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            for key, item in node.items():
                if key in DANGEROUS_KEYS:
                    return key
                stack.append(item)
        elif isinstance(node, list):
            stack.extend(node)
    return None


def safe_parse_json_chunk(
    payload: str,
    max_size: int = DEFAULT_MAX_JSON_CHUNK_SIZE,
    chunk_number: int | None = None,
) -> list[Any]:
    """Parse a JSON chunk payload, refusing anything unsafe.

    Args:
        payload: JSON text of one chunk
        max_size: Largest accepted payload, in bytes
        chunk_number: Chunk number for error context

    Returns:
        Parsed rows

    Raises:
        ReconstructionSecurityError: If the payload is too large, malformed,
            contains a dangerous key or is not a JSON array
    """
    label = f" {chunk_number}" if chunk_number is not None else ""

    size = len(payload.encode("utf-8"))
    if size > max_size:
        raise ReconstructionSecurityError(
            f"JSON chunk{label} exceeds maximum size limit ({size} > {max_size} bytes)",
            chunk_number,
        )

    try:
        parsed = json.loads(payload)
    except (ValueError, RecursionError) as e:
        raise ReconstructionSecurityError(
            f"invalid JSON chunk{label}: {e}",
            chunk_number,
        ) from e

    dangerous = find_dangerous_key(parsed)
    if dangerous is not None:
        raise ReconstructionSecurityError(
            f"potentially dangerous JSON key detected: {dangerous}",
            chunk_number,
        )

    if not isinstance(parsed, list):
        raise ReconstructionSecurityError(
            f"parsed JSON data is not an array (chunk{label} holds {type(parsed).__name__})",
            chunk_number,
        )
    return parsed


def reconstruct_from_chunks(
    chunks: Iterable[Chunk | Mapping[str, Any]] | None,
    output_format: OutputFormat = "json",
    max_json_chunk_size: int = DEFAULT_MAX_JSON_CHUNK_SIZE,
) -> list[Any] | str:
    """Rebuild one logical result from chunks, in chunk order.

    Args:
        chunks: Chunks as produced by StreamingHandler (models or dicts with ``data``)
        output_format: "csv" concatenates text, "json" parses and concatenates
            rows, "raw" concatenates row lists
        max_json_chunk_size: Size cap for string JSON payloads

    Returns:
        CSV text for "csv", otherwise a list of rows

    Raises:
        ReconstructionSecurityError: If a JSON chunk is unsafe or a chunk
            payload does not match ``output_format``
    """
    chunk_list = list(chunks or [])
    if output_format == "csv":
        parts = []
        for chunk in chunk_list:
            data, number = _chunk_payload(chunk)
            if data is not None and not isinstance(data, str):
                raise ReconstructionSecurityError(
                    f"chunk {number} holds {type(data).__name__} data, not CSV text",
                    number,
                )
            parts.append(data or "")
        return "".join(parts)

    rows: list[Any] = []
    for chunk in chunk_list:
        data, number = _chunk_payload(chunk)
        if output_format == "raw" and isinstance(data, str):
            raise ReconstructionSecurityError(
                f"chunk {number} holds encoded text, not raw rows",
                number,
            )
        if output_format == "json" and isinstance(data, str):
            rows.extend(safe_parse_json_chunk(data, max_json_chunk_size, number))
        elif isinstance(data, list):
            rows.extend(data)
        elif data is not None:
            rows.append(data)
    return rows
