"""Tests for the document chunker."""

import pytest

from bot_recall.core.config import ChunkingConfig
from bot_recall.domain.models import SourceMeta
from bot_recall.services.chunking import DocumentChunker, chunk_document, looks_like_heading

PROSE = "the store opens at nine and closes at six on weekdays "


def prose(length: int) -> str:
    return (PROSE * (length // len(PROSE) + 1))[:length]


@pytest.fixture
def chunker(chunking_config):
    return DocumentChunker(chunking_config)


class TestWindows:
    def test_nine_thousand_chars_give_three_overlapping_fragments(self, chunker):
        text = prose(9000)

        drafts = chunker.chunk(text)

        assert [(draft.start, draft.end) for draft in drafts] == [(0, 4000), (3400, 7400), (6800, 9000)]
        assert drafts[1].content[:600] == drafts[0].content[-600:]

    def test_fragment_bounds(self):
        config = ChunkingConfig(max_chars=500, overlap_chars=100, min_chunk=50)
        drafts = DocumentChunker(config).chunk(prose(3210))

        assert len(drafts) > 1
        assert all(len(draft) <= 500 for draft in drafts)
        assert all(len(draft) >= 50 for draft in drafts)

    def test_every_character_is_covered(self):
        config = ChunkingConfig(max_chars=500, overlap_chars=100, min_chunk=50)
        chunker = DocumentChunker(config)
        raw = "\n\n".join(prose(700 + 90 * index) for index in range(5))

        cleaned = chunker.clean(raw)
        covered = set()
        for draft in chunker.chunk(raw):
            assert cleaned[draft.start : draft.end] == draft.content
            covered.update(range(draft.start, draft.end))

        uncovered = [index for index, char in enumerate(cleaned) if index not in covered and not char.isspace()]
        assert uncovered == []

    def test_short_document_is_a_single_fragment(self, chunker):
        drafts = chunker.chunk("Opening hours are nine to six.")

        assert len(drafts) == 1
        assert drafts[0].start == 0


class TestCleaning:
    def test_empty_input(self, chunker):
        assert chunker.chunk("") == []
        assert chunker.chunk("   \n\n  ") == []

    def test_encoded_runs_are_removed(self, chunker):
        blob = "QUJDREVGR0hJSktMTU5PUFFSU1RVVldYWVo" * 6
        cleaned = chunker.clean(f"Shipping takes two days.\n{blob}\nReturns are free.")

        assert blob not in cleaned
        assert "Shipping takes two days." in cleaned
        assert "Returns are free." in cleaned

    def test_repeated_header_lines_are_removed(self, chunker):
        raw = "\n".join(f"ACME Confidential\nSection {index} talks about delivery options." for index in range(4))

        cleaned = chunker.clean(raw)

        assert "ACME Confidential" not in cleaned
        assert "Section 3 talks about delivery options." in cleaned

    def test_page_markers_and_tiny_lines_are_removed(self, chunker):
        cleaned = chunker.clean("Warranty lasts one year.\nPage 3 of 10\n--\nx\nCall us anytime.")

        assert "Page 3" not in cleaned
        assert "\nx\n" not in cleaned
        assert "Call us anytime." in cleaned


class TestSections:
    def test_markdown_sections_split_at_headings(self, chunker):
        text = f"# Intro\n{prose(500)}\n# Pricing\n{prose(500)}"

        drafts = chunker.chunk(text, SourceMeta(filename="guide.md"))

        assert len(drafts) == 2
        assert drafts[0].content.startswith("# Intro")
        assert drafts[1].content.startswith("# Pricing")
        assert drafts[0].chunk_id.startswith("guide.md-0-0-")
        assert drafts[1].source_meta.filename == "guide.md"

    def test_short_sections_are_folded_forward(self, chunker):
        text = f"# A\ntiny\n# B\n{prose(400)}"

        drafts = chunker.chunk(text)

        assert len(drafts) == 1
        assert drafts[0].content.startswith("# A")

    def test_chunk_ids_are_stable(self, chunker):
        text = prose(5000)
        assert [d.chunk_id for d in chunker.chunk(text)] == [d.chunk_id for d in chunker.chunk(text)]


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("## Delivery", True),
        ("SHIPPING AND RETURNS", True),
        ("Opening hours:", True),
        ("The store opens at nine.", False),
        ("", False),
    ],
)
def test_looks_like_heading(line, expected):
    assert looks_like_heading(line) is expected


def test_chunk_document_uses_default_settings():
    drafts = chunk_document(prose(9000))
    assert len(drafts) == 3
