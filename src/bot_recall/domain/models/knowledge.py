"""Knowledge fragments and the records derived from them."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from bot_recall.domain.models.utils import unique_ordered


class SourceMeta(BaseModel):
    """Provenance of a document or fragment."""

    source: str | None = None
    filename: str | None = None
    url: str | None = None
    title: str | None = None
    page: int | None = None
    mime_type: str | None = None

    @property
    def identifier(self) -> str:
        """Stable identifier used as the chunk id prefix."""
        return self.filename or self.url or self.source or "text"

    def to_neo4j_properties(self, prefix: str = "source_") -> dict[str, Any]:
        return {f"{prefix}{key}": value for key, value in self.model_dump().items()}

    @classmethod
    def from_neo4j_record(cls, record: dict[str, Any], prefix: str = "source_") -> "SourceMeta":
        return cls(**{
            name: record.get(f"{prefix}{name}")
            for name in cls.model_fields
            if record.get(f"{prefix}{name}") is not None
        })


class FragmentDraft(BaseModel):
    """A chunk of cleaned document text, not yet embedded."""

    chunk_id: str
    chunk_index: int = Field(ge=0)
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    content: str
    source_meta: SourceMeta = Field(default_factory=SourceMeta)

    def __len__(self) -> int:
        return len(self.content)


class KnowledgeFragment(BaseModel):
    """Searchable unit of a bot's knowledge base."""

    chunk_id: str
    bot_scope: str
    content: str
    keywords: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None
    embedding_model: str | None = None
    entity_id: str | None = None
    title: str | None = None
    source_meta: SourceMeta = Field(default_factory=SourceMeta)

    @field_validator("keywords")
    @classmethod
    def _dedupe_keywords(cls, value: list[str]) -> list[str]:
        return unique_ordered(value)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def to_neo4j_properties(self) -> dict[str, Any]:
        """Flatten to primitive properties, provenance included."""
        props = self.model_dump(exclude={"source_meta"})
        props.update(self.source_meta.to_neo4j_properties())
        return props

    @classmethod
    def from_neo4j_record(cls, record: dict[str, Any]) -> "KnowledgeFragment":
        data = {name: record.get(name) for name in cls.model_fields if name != "source_meta"}
        data = {key: value for key, value in data.items() if value is not None}
        data.setdefault("keywords", [])
        return cls(source_meta=SourceMeta.from_neo4j_record(record), **data)


class ExtractedKnowledge(BaseModel):
    """Structured knowledge the language model pulled out of one fragment."""

    entity_id: str | None = None
    title: str = ""
    content: str
    keywords: list[str] = Field(default_factory=list)
    type: str = "fact"
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    # Provenance of the fragment the item came from
    chunk_id: str | None = None
    chunk_index: int | None = None
    start: int | None = None
    end: int | None = None
    source_meta: SourceMeta = Field(default_factory=SourceMeta)

    @field_validator("keywords")
    @classmethod
    def _dedupe_keywords(cls, value: list[str]) -> list[str]:
        return unique_ordered(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Any:
        if isinstance(value, int | float):
            return min(1.0, max(0.0, float(value)))
        return value


class ScoreBreakdown(BaseModel):
    semantic: float = 0.0
    keyword: float = 0.0


class RetrievalCandidate(BaseModel):
    """A fragment returned by one of the retrieval tiers, with its score."""

    content: str
    keywords: list[str] = Field(default_factory=list)
    entity_id: str | None = None
    title: str | None = None
    score: float = 0.0
    scores: ScoreBreakdown = Field(default_factory=ScoreBreakdown)
    embedding: list[float] | None = None
    chunk_id: str | None = None
    source_meta: SourceMeta = Field(default_factory=SourceMeta)

    @classmethod
    def from_fragment(
        cls, fragment: KnowledgeFragment, semantic: float = 0.0, keyword: float = 0.0
    ) -> "RetrievalCandidate":
        return cls(
            content=fragment.content,
            keywords=list(fragment.keywords),
            entity_id=fragment.entity_id,
            title=fragment.title,
            score=max(semantic, keyword),
            scores=ScoreBreakdown(semantic=semantic, keyword=keyword),
            embedding=fragment.embedding,
            chunk_id=fragment.chunk_id,
            source_meta=fragment.source_meta,
        )


class Provenance(BaseModel):
    chunk_id: str | None = None
    source_meta: SourceMeta = Field(default_factory=SourceMeta)


class MergedKnowledgeItem(BaseModel):
    """Final retrieval output after entity grouping and clustering."""

    entity_id: str | None = None
    title: str | None = None
    content: str
    keywords: list[str] = Field(default_factory=list)
    score: float = 0.0
    provenance: list[Provenance] = Field(default_factory=list)
