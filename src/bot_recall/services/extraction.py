"""Optional per-fragment knowledge extraction through the language model."""

import asyncio
from typing import Any

from bot_recall.core.base import ApplicationError
from bot_recall.core.config import ChunkingConfig, settings
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import ChatMessage, ExtractedKnowledge, FragmentDraft, GenerationOptions
from bot_recall.domain.models.utils import unique_ordered
from bot_recall.domain.services import LanguageModel
from bot_recall.infrastructure.llm.parsing import extract_json_array

logger = get_logger(__name__)

EXTRACTION_OPTIONS = GenerationOptions(temperature=0.0, max_tokens=1500)

EXTRACTION_SYSTEM_PROMPT = "You are a strict JSON output agent."

EXTRACTION_PROMPT = """You extract standalone pieces of knowledge for a retrieval system.

TASK: From the text below, extract independent knowledge items. Each item describes one entity or one complete fact.

RULES:
1) Return ONLY a JSON array. No commentary, no explanation.
2) Preserve the meaning and precision of the source. Do not over-summarise.
3) If the text is garbage (long encoded strings, broken markup, bare headers or footers), return [].
4) Each element has the shape:
   {{
     "entityId": "canonical name of the entity, or an empty string",
     "title": "short title",
     "content": "1-4 sentences with the full detail, without page numbers, headers or footers",
     "keywords": ["keyword 1", "keyword 2"],
     "type": "entity" | "fact" | "table",
     "confidence": 0.0
   }}
5) Describe tables as lists or JSON.
6) Use the same entityId for the same entity everywhere.

INPUT:
\"\"\"
{text}
\"\"\"
"""


def _coerce_item(raw: Any, draft: FragmentDraft) -> ExtractedKnowledge | None:
    if not isinstance(raw, dict):
        return None
    content = str(raw.get("content") or "").strip()
    if not content:
        return None

    title = str(raw.get("title") or "").strip()
    entity_id = str(raw.get("entityId") or raw.get("entity_id") or title).strip() or None
    keywords = raw.get("keywords")
    confidence = raw.get("confidence")

    return ExtractedKnowledge(
        entity_id=entity_id,
        title=title,
        content=content,
        keywords=[str(keyword) for keyword in keywords] if isinstance(keywords, list) else [],
        type=str(raw.get("type") or "fact"),
        confidence=confidence if isinstance(confidence, int | float) and not isinstance(confidence, bool) else 0.8,
        chunk_id=draft.chunk_id,
        chunk_index=draft.chunk_index,
        start=draft.start,
        end=draft.end,
        source_meta=draft.source_meta,
    )


def merge_extracted(items: list[ExtractedKnowledge]) -> list[ExtractedKnowledge]:
    """Group items sharing an entity id (case-insensitive).

    Distinct contents are joined with a blank line, keywords unioned, the
    longest title and the highest confidence kept. Entity-less items whose
    content is already contained in a merged item are dropped.
    """
    groups: dict[str, ExtractedKnowledge] = {}
    loose: list[ExtractedKnowledge] = []

    for item in items:
        key = (item.entity_id or "").strip().lower()
        if not key:
            loose.append(item)
            continue

        current = groups.get(key)
        if current is None:
            groups[key] = item.model_copy(deep=True)
            continue

        if item.content not in current.content:
            current.content = f"{current.content}\n\n{item.content}"
        current.keywords = unique_ordered([*current.keywords, *item.keywords])
        if len(item.title) > len(current.title):
            current.title = item.title
        current.confidence = max(current.confidence, item.confidence)

    merged = list(groups.values())
    for item in loose:
        if not any(item.content in existing.content for existing in merged):
            merged.append(item)
    return merged


class KnowledgeExtractor:
    """Asks the language model for structured knowledge items per fragment.

    Extraction never fails a pipeline: model errors and malformed output both
    produce an empty list for that fragment.
    """

    def __init__(self, llm: LanguageModel, config: ChunkingConfig | None = None):
        self.llm = llm
        self.config = config or settings.chunking

    async def extract(self, draft: FragmentDraft) -> list[ExtractedKnowledge]:
        messages = [
            ChatMessage.system(EXTRACTION_SYSTEM_PROMPT),
            ChatMessage.user(EXTRACTION_PROMPT.format(text=draft.content)),
        ]
        try:
            output = await self.llm.generate(messages, EXTRACTION_OPTIONS)
            raw_items = extract_json_array(output)
        except ApplicationError as e:
            logger.warning(f"Skipping extraction for {draft.chunk_id}: {e.message}", error_code=e.code.value)
            return []
        except Exception as e:
            logger.warning(f"Skipping extraction for {draft.chunk_id}: {e!s}", error_type=type(e).__name__)
            return []

        items = [item for item in (_coerce_item(raw, draft) for raw in raw_items) if item is not None]
        logger.debug(f"Extracted {len(items)} knowledge items", chunk_id=draft.chunk_id)
        return items

    async def extract_all(self, drafts: list[FragmentDraft]) -> list[ExtractedKnowledge]:
        """Extract from every draft with bounded concurrency, then merge by entity."""
        semaphore = asyncio.Semaphore(self.config.extraction_concurrency)

        async def bounded(draft: FragmentDraft) -> list[ExtractedKnowledge]:
            async with semaphore:
                return await self.extract(draft)

        results = await asyncio.gather(*(bounded(draft) for draft in drafts))
        return merge_extracted([item for batch in results for item in batch])
