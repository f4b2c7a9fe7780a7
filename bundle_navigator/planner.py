"""
Chunk Planner
=============

Deterministic partition of a 1-based page range into fixed-size chunks.
The last chunk may be shorter than chunk_size.
"""

import math
from dataclasses import dataclass
from typing import Dict

from .errors import ValidationError


@dataclass(frozen=True)
class ChunkSpec:
    index: int
    page_start: int
    page_end: int

    @property
    def pages(self) -> range:
        return range(self.page_start, self.page_end + 1)


def total_chunks(page_count: int, chunk_size: int) -> int:
    if chunk_size < 1:
        raise ValidationError("chunk_size must be >= 1", details={"chunk_size": chunk_size})
    if page_count <= 0:
        return 0
    return math.ceil(page_count / chunk_size)


def chunk_bounds(index: int, page_count: int, chunk_size: int) -> ChunkSpec:
    count = total_chunks(page_count, chunk_size)
    if not 0 <= index < count:
        raise ValidationError(
            f"Chunk index {index} out of range",
            details={"index": index, "total_chunks": count},
        )
    start = index * chunk_size + 1
    end = min(start + chunk_size - 1, page_count)
    return ChunkSpec(index, start, end)


def build_chunk_text(chunk: ChunkSpec, pages: Dict[int, str]) -> str:
    """Concatenate the chunk's pages, each prefixed with a page marker"""
    parts = []
    for page_no in chunk.pages:
        parts.append(f"--- Page {page_no} ---\n{pages.get(page_no, '')}")
    return "\n\n".join(parts)
