"""Paragraph-aware chunking for rewrite requests."""

from typing import List

PARAGRAPH_SEPARATOR = "\n\n"


def split(text: str, max_chars: int) -> List[str]:
    """Split text into chunks of whole paragraphs.

    Consecutive paragraphs are packed greedily while the chunk stays within
    ``max_chars``. A paragraph longer than ``max_chars`` becomes its own
    chunk instead of being cut mid-sentence. Paragraphs are neither stripped
    nor dropped, so ``merge(split(text, n)) == text`` for any text.

    Args:
        text: Text to split
        max_chars: Target maximum chunk size in characters

    Returns:
        Ordered list of chunks (never empty)
    """
    if max_chars < 1:
        raise ValueError("max_chars must be at least 1")

    if len(text) <= max_chars:
        return [text]

    chunks: List[str] = []
    buffer: List[str] = []
    buffer_len = 0

    for paragraph in text.split(PARAGRAPH_SEPARATOR):
        if not buffer:
            buffer = [paragraph]
            buffer_len = len(paragraph)
            continue

        projected = buffer_len + len(PARAGRAPH_SEPARATOR) + len(paragraph)
        if projected <= max_chars:
            buffer.append(paragraph)
            buffer_len = projected
        else:
            chunks.append(PARAGRAPH_SEPARATOR.join(buffer))
            buffer = [paragraph]
            buffer_len = len(paragraph)

    chunks.append(PARAGRAPH_SEPARATOR.join(buffer))
    return chunks


def merge(chunks: List[str]) -> str:
    """Reassemble chunks produced by :func:`split`."""
    return PARAGRAPH_SEPARATOR.join(chunks)
