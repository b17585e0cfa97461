"""Tests for language-model knowledge extraction."""

import json

import pytest
from conftest import FakeLanguageModel

from bot_recall.core.errors import ServiceError
from bot_recall.domain.models import ExtractedKnowledge, FragmentDraft, SourceMeta
from bot_recall.services.extraction import EXTRACTION_OPTIONS, KnowledgeExtractor, merge_extracted


def draft(chunk_id="doc_0_0", content="The Pro plan costs 10 dollars per month.", index=0):
    return FragmentDraft(
        chunk_id=chunk_id,
        chunk_index=index,
        start=0,
        end=len(content),
        content=content,
        source_meta=SourceMeta(filename="pricing.txt"),
    )


class TestKnowledgeExtractor:
    async def test_items_carry_fragment_provenance(self):
        output = json.dumps([
            {
                "entityId": "Pro Plan",
                "title": "Pro plan price",
                "content": "The Pro plan costs 10 dollars per month.",
                "keywords": ["pro", "price", "pro"],
                "type": "fact",
                "confidence": 0.95,
            }
        ])
        llm = FakeLanguageModel(f"```json\n{output}\n```")

        items = await KnowledgeExtractor(llm).extract(draft())

        assert len(items) == 1
        item = items[0]
        assert item.entity_id == "Pro Plan"
        assert item.keywords == ["pro", "price"]
        assert item.chunk_id == "doc_0_0"
        assert item.source_meta.filename == "pricing.txt"
        assert llm.calls[0][1] == EXTRACTION_OPTIONS
        assert "The Pro plan costs 10 dollars" in llm.calls[0][0][-1].content

    async def test_missing_fields_get_defaults(self):
        llm = FakeLanguageModel('[{"title": "Support hours", "content": "Open from 8 to 17."}, {"title": "empty"}]')

        items = await KnowledgeExtractor(llm).extract(draft())

        assert len(items) == 1
        assert items[0].entity_id == "Support hours"
        assert items[0].confidence == pytest.approx(0.8)
        assert items[0].type == "fact"

    async def test_out_of_range_confidence_is_clamped(self):
        llm = FakeLanguageModel('[{"content": "Open every day.", "confidence": 7}]')

        items = await KnowledgeExtractor(llm).extract(draft())

        assert items[0].confidence == 1.0
        assert items[0].entity_id is None

    async def test_malformed_output_yields_nothing(self):
        llm = FakeLanguageModel("I could not find anything useful in this text.")

        assert await KnowledgeExtractor(llm).extract(draft()) == []

    async def test_model_error_yields_nothing(self):
        llm = FakeLanguageModel(ServiceError("overloaded"))

        assert await KnowledgeExtractor(llm).extract(draft()) == []

    async def test_extract_all_merges_across_fragments(self):
        llm = FakeLanguageModel(
            '[{"entityId": "Pro Plan", "title": "Pro", "content": "Pro costs 10 dollars.", "keywords": ["price"]}]',
            '[{"entityId": "pro plan", "title": "Pro plan support", "content": "Pro has priority support.",'
            ' "keywords": ["support"]}]',
        )
        drafts = [draft("doc_0_0", "first part of the text"), draft("doc_1_100", "second part of the text", 1)]

        items = await KnowledgeExtractor(llm).extract_all(drafts)

        assert len(items) == 1
        assert items[0].content == "Pro costs 10 dollars.\n\nPro has priority support."
        assert items[0].keywords == ["price", "support"]
        assert items[0].title == "Pro plan support"


class TestMergeExtracted:
    def test_duplicate_content_is_not_repeated(self):
        items = [
            ExtractedKnowledge(entity_id="Shop", content="Open 8 to 17.", confidence=0.6),
            ExtractedKnowledge(entity_id="SHOP", content="Open 8 to 17.", confidence=0.9),
        ]

        merged = merge_extracted(items)

        assert len(merged) == 1
        assert merged[0].content == "Open 8 to 17."
        assert merged[0].confidence == pytest.approx(0.9)

    def test_loose_items_contained_in_a_group_are_dropped(self):
        items = [
            ExtractedKnowledge(entity_id="Shop", content="Open 8 to 17. Closed on Sunday."),
            ExtractedKnowledge(content="Closed on Sunday."),
            ExtractedKnowledge(content="Free parking nearby."),
        ]

        merged = merge_extracted(items)

        assert [item.content for item in merged] == ["Open 8 to 17. Closed on Sunday.", "Free parking nearby."]

    def test_inputs_are_not_mutated(self):
        first = ExtractedKnowledge(entity_id="Shop", content="Open 8 to 17.")
        second = ExtractedKnowledge(entity_id="Shop", content="Closed on Sunday.")

        merge_extracted([first, second])

        assert first.content == "Open 8 to 17."
