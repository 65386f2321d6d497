"""Streaming execution and chunk reconstruction."""

from sqlwarden.streaming.handler import StreamingHandler, build_export_query
from sqlwarden.streaming.reconstruct import reconstruct_from_chunks, safe_parse_json_chunk

__all__ = [
    "StreamingHandler",
    "build_export_query",
    "reconstruct_from_chunks",
    "safe_parse_json_chunk",
]
