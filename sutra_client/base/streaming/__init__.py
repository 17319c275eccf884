"""Streaming package: fragment accumulation and stream helpers."""

from .accumulator import AccumulatorState, StreamAccumulator, StreamProgress, StreamStats
from .helpers import buffered_stream, collect_stream, stream_content

__all__ = [
    "AccumulatorState",
    "StreamAccumulator",
    "StreamProgress",
    "StreamStats",
    "buffered_stream",
    "collect_stream",
    "stream_content",
]
