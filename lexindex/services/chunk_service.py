import logging
import re

from lexindex.core.config import ChunkingConfig
from lexindex.core.models import Chunk

logger = logging.getLogger(__name__)

WS_RE = re.compile(r"\s+")
# a sentence terminator followed by whitespace
SENTENCE_END_RE = re.compile(r"[.!?]\s")


def normalize_whitespace(text: str) -> str:
    return WS_RE.sub(" ", text or "").strip()


def _snap_to_sentence(text: str, min_end: int, end: int, window: int) -> int:
    """Move `end` to just after the sentence terminator closest to it.

    The search covers `[end - window, end + window)` clipped below at
    `min_end`, so a snapped boundary still leaves room for forward progress.
    """
    if window <= 0:
        return end
    lo = max(min_end, end - window)
    hi = min(len(text), end + window)
    best = end
    best_dist = None
    for m in SENTENCE_END_RE.finditer(text, lo, hi):
        cand = m.start() + 1
        dist = abs(cand - end)
        if best_dist is None or dist < best_dist:
            best, best_dist = cand, dist
        elif cand > end:
            break
    return best


def chunk_text(text: str, config: ChunkingConfig | None = None) -> list[Chunk]:
    """Split text into ordered, bounded, overlapping chunks.

    Pure function of ``(text, config)``: the same input always yields the same
    chunk sequence, which keeps point ids stable across reindexing.
    Offsets refer to the whitespace-normalized text.
    """
    config = config or ChunkingConfig()
    clean = normalize_whitespace(text)
    n = len(clean)

    chunks: list[Chunk] = []
    start = 0
    while start < n:
        if len(chunks) >= config.max_chunks_per_document:
            logger.warning(
                "Chunk limit reached (%d); dropping text after offset %d of %d",
                config.max_chunks_per_document, start, n,
            )
            break

        end = min(start + config.chunk_size, n)
        if end < n:
            end = _snap_to_sentence(clean, start + config.chunk_overlap + 1, end, config.sentence_window)

        part = clean[start:end].strip()
        if part:
            chunks.append(Chunk(text=part, index=len(chunks), start_char=start, end_char=end))

        if end >= n:
            break
        start = max(end - config.chunk_overlap, start + 1)
    return chunks
