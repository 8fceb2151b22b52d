import pytest

from services.chunking import chunk_text


def test_chunks_split_on_line_boundaries():
    lines = [f"{i}. JUN 28 STARBUCKS 5.25" for i in range(1, 41)]
    chunks = chunk_text("\n".join(lines), max_len=120)
    assert all(len(c) <= 120 for c in chunks)
    assert [l for c in chunks for l in c.split("\n")] == lines


def test_oversized_line_is_hard_split():
    chunks = chunk_text("short\n" + "x" * 25 + "\ntail", max_len=10)
    assert chunks == ["short", "x" * 10, "x" * 10, "x" * 5, "tail"]


def test_empty_text_and_bad_size():
    assert chunk_text("") == []
    with pytest.raises(ValueError):
        chunk_text("a", max_len=0)
