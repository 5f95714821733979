"""
Knowledge feature: fixed-window text chunker.

Splits raw text into overlapping windows with character offsets so every
stored passage can be traced back to its position in the source.
Offsets refer to the normalized text (CRLF → LF, 3+ newlines → 2, stripped).
"""

import re

from app.features.knowledge.schemas import Chunk, ChunkMetadata

DEFAULT_CHUNK_SIZE = 2000
DEFAULT_CHUNK_OVERLAP = 200
MIN_CHUNK_LENGTH = 40

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def normalize_text(raw_text: str) -> str:
    """Normalize line endings and blank-line runs, then strip."""
    text = raw_text.replace("\r\n", "\n")
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def chunk_text(
    raw_text: str,
    source: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    segment_index: int | None = None,
    segment_total: int | None = None,
    min_chunk_length: int = MIN_CHUNK_LENGTH,
) -> list[Chunk]:
    """Split text into overlapping chunks.

    Args:
        raw_text: Text to split.
        source: Source label stamped on every chunk (e.g. file name).
        chunk_size: Window width in characters.
        chunk_overlap: Characters shared by consecutive windows.
        segment_index: Position of this text when one document is sent in
            several ingestion calls. Stamped verbatim.
        segment_total: Number of segments of that document. Stamped verbatim.
        min_chunk_length: Windows shorter than this after stripping are dropped.

    Returns:
        Chunks in source order, `chunk_index` starting at 0.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    step = max(1, chunk_size - chunk_overlap)
    text = normalize_text(raw_text)

    chunks: list[Chunk] = []
    chunk_index = 0
    for start in range(0, len(text), step):
        end = min(start + chunk_size, len(text))
        content = text[start:end].strip()
        if len(content) < min_chunk_length:
            continue

        chunks.append(Chunk(
            content=content,
            metadata=ChunkMetadata(
                chunk_index=chunk_index,
                char_start=start,
                char_end=end,
                source=source,
                segment_index=segment_index,
                segment_total=segment_total,
            ),
        ))
        chunk_index += 1

    return chunks
