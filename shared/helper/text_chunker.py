"""Overlapping text chunking used before embedding.

Chunks are cut at natural boundaries where possible: a sentence end followed
by whitespace, or a line break, found shortly before the size limit. Without
such a boundary the cut falls on the last whitespace, and as a last resort on
the hard size limit. Python strings index code points, so a hard cut never
splits an encoded character.
"""

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 150
DEFAULT_LOOKBACK = 200

_SENTENCE_END = ".!?"


def split_text(
    text: str,
    max_chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
    lookback: int = DEFAULT_LOOKBACK,
) -> list[str]:
    """Split a document's text into overlapping chunks.

    Text that fits into one chunk is returned unchanged as a single element
    (the empty string yields [""]). Longer text is scanned from a cursor;
    after each chunk the cursor moves back by `overlap` characters from the
    chunk end but always strictly forward from the previous cursor, so the
    loop terminates for any overlap, including overlap >= max_chunk_size.

    Args:
        text (str): The full document text.
        max_chunk_size (int): Maximum characters per chunk before trimming.
        overlap (int): Characters shared by consecutive chunks.
        lookback (int): How far before the size limit to search for a natural boundary.

    Returns:
        list[str]: Ordered, whitespace-trimmed chunks.

    Raises:
        ValueError: If max_chunk_size < 1 or overlap / lookback are negative.
    """
    if max_chunk_size < 1:
        raise ValueError(f"max_chunk_size must be at least 1, got {max_chunk_size}.")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}.")
    if lookback < 0:
        raise ValueError(f"lookback must not be negative, got {lookback}.")

    if len(text) <= max_chunk_size:
        return [text]

    chunks: list[str] = []
    length = len(text)
    start = 0
    while start < length:
        end = min(start + max_chunk_size, length)
        if end < length:
            end = _find_cut(text, start, end, lookback)

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
        if end >= length:
            break

        next_start = end - overlap
        if next_start <= start:
            next_start = start + 1
        start = next_start
    return chunks


def _find_cut(text: str, start: int, hard_end: int, lookback: int) -> int:
    """Return the exclusive end index for the chunk starting at `start`.

    Preference order: natural boundary inside the lookback window, last
    whitespace after `start`, then the hard cutoff itself.
    """
    window_start = max(start + 1, hard_end - lookback)
    for cut in range(hard_end, window_start - 1, -1):
        previous = text[cut - 1]
        if previous == "\n":
            return cut
        if previous in _SENTENCE_END and text[cut].isspace():
            return cut

    for cut in range(hard_end, start, -1):
        if text[cut].isspace():
            return cut

    return hard_end
