"""Document chunking: boilerplate and noise removal, sectioning, sliding windows."""

import hashlib
import re
from collections import Counter

from bot_recall.core.config import ChunkingConfig, settings
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import FragmentDraft, SourceMeta

logger = get_logger(__name__)

_PAGE_LINE = re.compile(
    r"^[ \t]*(?:page\s*\d+(?:\s*(?:of|/)\s*\d+)?|trang\s*\d+(?:\s*/\s*\d+)?|-\s*\d+\s*-)[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_MULTI_SPACE = re.compile(r" {2,}")
_CONTROL = re.compile(r"[\x00-\x09\x0b-\x1f\x7f-\x9f]")
_MARKDOWN_HEADING = re.compile(r"^#{1,6}(?:\s|$)")
_MARKDOWN_SECTION_START = re.compile(r"\n(?=#)")
_PARAGRAPH_BREAK = re.compile(r"\n[ ]*\n")

# Header/footer candidates are short lines
_REPEATED_LINE_MAX_CHARS = 80
_SHORT_LINE_MAX_CHARS = 2


def looks_like_heading(text: str) -> bool:
    """Markdown heading, ALL-CAPS title of 10+ chars, or a line ending with ':'."""
    stripped = text.strip()
    if not stripped or "\n" in stripped:
        return False
    if _MARKDOWN_HEADING.match(stripped):
        return True
    if len(stripped) >= 10 and stripped == stripped.upper() and any(char.isalpha() for char in stripped):
        return True
    return stripped.endswith(":")


def make_chunk_id(identifier: str, index: int, start: int) -> str:
    digest = hashlib.md5(f"{identifier}{index}{start}".encode()).hexdigest()[:8]
    return f"{identifier}-{index}-{start}-{digest}"


class DocumentChunker:
    """Splits raw document text into bounded, overlapping fragments.

    All offsets refer to the cleaned text returned by ``clean``.
    """

    def __init__(self, config: ChunkingConfig | None = None):
        self.config = config or settings.chunking
        self._base64_run = re.compile(r"[A-Za-z0-9+/=]{%d,}[ \n]*" % (self.config.base64_min_run + 1))

    def strip_boilerplate(self, text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", " ")
        text = _PAGE_LINE.sub("", text)
        text = _MULTI_SPACE.sub(" ", text)

        lines = text.split("\n")
        counts = Counter(
            line.strip() for line in lines if 0 < len(line.strip()) <= _REPEATED_LINE_MAX_CHARS
        )
        repeated = {line for line, count in counts.items() if count >= self.config.repeated_line_min_count}
        if repeated:
            logger.debug(f"Removing {len(repeated)} repeated header/footer lines")
            lines = [line for line in lines if line.strip() not in repeated]
        return "\n".join(lines)

    def strip_noise(self, text: str) -> str:
        text = self._base64_run.sub("\n", text)
        text = _CONTROL.sub("", text)
        return "\n".join(
            line for line in text.split("\n") if not 0 < len(line.strip()) <= _SHORT_LINE_MAX_CHARS
        )

    def clean(self, raw_text: str) -> str:
        return self.strip_noise(self.strip_boilerplate(raw_text))

    def _section_spans(self, text: str) -> list[tuple[int, int]]:
        """Spans that partition ``[0, len(text))`` at heading boundaries."""
        starts = [0]
        has_markdown = any(_MARKDOWN_HEADING.match(line.strip()) for line in text.split("\n"))
        if has_markdown:
            starts.extend(match.end() for match in _MARKDOWN_SECTION_START.finditer(text))
        else:
            for match in _PARAGRAPH_BREAK.finditer(text):
                paragraph_end = text.find("\n\n", match.end())
                paragraph = text[match.end() : paragraph_end if paragraph_end != -1 else len(text)]
                if looks_like_heading(paragraph):
                    starts.append(match.end())

        starts = sorted(set(starts))
        bounds = starts[1:] + [len(text)]
        return [(start, end) for start, end in zip(starts, bounds, strict=True) if end > start]

    def _coalesce(self, spans: list[tuple[int, int]], text: str) -> list[tuple[int, int]]:
        """Fold sections too short to stand alone into their neighbours."""
        merged: list[tuple[int, int]] = []
        pending_start: int | None = None
        for start, end in spans:
            span_start = start if pending_start is None else pending_start
            if end - span_start < self.config.min_chunk or not text[span_start:end].strip():
                pending_start = span_start
                continue
            merged.append((span_start, end))
            pending_start = None

        if pending_start is not None:
            if merged:
                merged[-1] = (merged[-1][0], len(text))
            else:
                merged.append((pending_start, len(text)))
        return merged

    def _windows(self, start: int, end: int) -> list[tuple[int, int]]:
        windows = []
        position = start
        while position < end:
            window_end = min(position + self.config.max_chars, end)
            windows.append((position, window_end))
            if window_end == end:
                break
            position = max(position + 1, window_end - self.config.overlap_chars)
        if len(windows) > 1:
            windows = [(s, e) for s, e in windows if e - s >= self.config.min_chunk] or windows[:1]
        return windows

    def _hard_split(self, text: str) -> list[tuple[int, int]]:
        return [
            (start, min(start + self.config.max_chars, len(text)))
            for start in range(0, len(text), self.config.step)
            if len(text[start : start + self.config.max_chars].strip()) >= self.config.min_chunk
        ]

    def chunk(self, raw_text: str, source_meta: SourceMeta | None = None) -> list[FragmentDraft]:
        source_meta = source_meta or SourceMeta()
        if not raw_text or not raw_text.strip():
            return []

        text = self.clean(raw_text)
        if not text.strip():
            return []

        spans: list[tuple[int, int]] = []
        for section_start, section_end in self._coalesce(self._section_spans(text), text):
            spans.extend(self._windows(section_start, section_end))
        spans = [(start, end) for start, end in spans if text[start:end].strip()]

        if not spans:
            spans = self._hard_split(text)

        identifier = source_meta.identifier
        drafts = [
            FragmentDraft(
                chunk_id=make_chunk_id(identifier, index, start),
                chunk_index=index,
                start=start,
                end=end,
                content=text[start:end],
                source_meta=source_meta,
            )
            for index, (start, end) in enumerate(spans)
        ]
        logger.info(f"Chunked {len(text)} chars into {len(drafts)} fragments", source=identifier)
        return drafts


def chunk_document(raw_text: str, source_meta: SourceMeta | None = None) -> list[FragmentDraft]:
    return DocumentChunker().chunk(raw_text, source_meta)
