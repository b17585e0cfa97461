"""Cached bot profile lookups."""

from bot_recall.core.cache import BOT_PROFILE_NAMESPACE, CacheService
from bot_recall.core.errors import BotScopeNotFoundError
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import BotProfile
from bot_recall.domain.services import DocumentStore

logger = get_logger(__name__)


class BotProfileService:
    """Loads bot profiles through the shared cache.

    With ``require_profile`` an unknown or inactive bot scope is an error;
    otherwise callers get ``None`` and fall back to global defaults.
    """

    def __init__(self, store: DocumentStore, cache: CacheService, require_profile: bool = False):
        self.store = store
        self.cache = cache
        self.require_profile = require_profile

    async def get(self, bot_scope: str) -> BotProfile | None:
        profile = self.cache.get(BOT_PROFILE_NAMESPACE, bot_scope)
        if profile is None:
            # StoreUnavailableError propagates: this is a primary read
            profile = await self.store.get_bot_profile(bot_scope)
            if profile is not None:
                self.cache.set(BOT_PROFILE_NAMESPACE, bot_scope, profile)

        if profile is None or not profile.is_active:
            if self.require_profile:
                raise BotScopeNotFoundError(bot_scope)
            if profile is not None:
                logger.warning("Bot profile is inactive, using defaults", bot_scope=bot_scope)
            return None
        return profile
