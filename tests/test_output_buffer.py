from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from deskcore.terminal import OutputBuffer


def test_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        OutputBuffer(0)


def test_append_evicts_oldest_bytes() -> None:
    buffer = OutputBuffer(8)

    assert buffer.append(b"hello") == 0
    assert buffer.append(b" world") == 3

    assert buffer.snapshot() == b"lo world"
    assert len(buffer) == 8
    assert buffer.total_bytes == 11
    assert buffer.evicted_bytes == 3


def test_single_chunk_larger_than_limit_keeps_tail() -> None:
    buffer = OutputBuffer(4)

    buffer.append(b"0123456789")

    assert buffer.snapshot() == b"6789"


@given(st.integers(min_value=1, max_value=64), st.lists(st.binary(max_size=40), max_size=30))
def test_snapshot_is_tail_of_everything_appended(limit: int, chunks: list[bytes]) -> None:
    buffer = OutputBuffer(limit)
    for chunk in chunks:
        buffer.append(chunk)

    everything = b"".join(chunks)

    assert buffer.snapshot() == everything[-limit:]
    assert len(buffer) == min(limit, len(everything))
    assert buffer.total_bytes == len(everything)
    assert buffer.evicted_bytes == max(0, len(everything) - limit)
