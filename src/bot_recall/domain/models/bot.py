"""Bot profiles."""

from enum import Enum

from pydantic import BaseModel, Field


class BotStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class RagSettings(BaseModel):
    """Per-bot overrides of the retrieval defaults."""

    max_chunks: int | None = Field(default=None, gt=0)
    similarity_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class BotProfile(BaseModel):
    bot_scope: str
    name: str = ""
    system_prompt: str = ""
    status: BotStatus = BotStatus.ACTIVE
    customer_fields: list[str] = Field(default_factory=list, description="Fields accepted from save commands")
    product_focus: list[str] = Field(default_factory=list, description="Product keywords tracked as interests")
    rag: RagSettings = Field(default_factory=RagSettings)

    @property
    def is_active(self) -> bool:
        return self.status == BotStatus.ACTIVE
