from __future__ import annotations

from typing import List

from services import config


def chunk_text(text: str, max_len: int = config.CHUNK_CHARS) -> List[str]:
    """
    Split on line boundaries so a numbered line never straddles two chunks.
    A single line longer than `max_len` is hard-split, since it cannot fit anywhere.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")
    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        to_add = ("\n" if current else "") + line
        if len(current) + len(to_add) <= max_len:
            current += to_add
            continue
        if current:
            chunks.append(current)
        if len(line) > max_len:
            for start in range(0, len(line), max_len):
                chunks.append(line[start : start + max_len])
            current = ""
        else:
            current = line
    if current:
        chunks.append(current)
    return chunks
