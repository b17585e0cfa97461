"""Keyword tables for message intent and conversation topics."""

import re
from functools import lru_cache

GENERAL_TOPIC = "general"
GENERAL_INTENT = "general_inquiry"

GREETINGS = ("xin chào", "chào", "hello", "hi", "hey", "chào bạn", "chào anh", "chào chị")

# Checked in order; the first intent with a mentioned keyword wins
INTENT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("price_inquiry", ("giá", "bao nhiêu tiền", "price", "how much")),
    ("purchase_intent", ("mua", "đặt hàng", "buy", "order")),
    ("consultation", ("tư vấn", "tìm hiểu", "advice", "consult")),
    ("gratitude", ("cảm ơn", "thanks", "thank you")),
    ("timing", ("khi nào", "thời gian", "when")),
    ("location", ("địa chỉ", "ở đâu", "where", "address")),
)

TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "pricing": ("giá", "bao nhiêu tiền", "chi phí", "đắt", "rẻ", "price", "cost", "expensive", "cheap"),
    "features": ("tính năng", "chức năng", "làm được gì", "có gì", "feature", "features", "what can"),
    "guidance": ("hướng dẫn", "sử dụng", "cài đặt", "tích hợp", "how to", "install", "setup", "integrate"),
    "payment": ("thanh toán", "mua", "đặt hàng", "mua ở đâu", "payment", "pay", "buy", "checkout"),
    "support": ("hỗ trợ", "giúp đỡ", "tư vấn", "troubleshoot", "support", "help"),
}


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)", re.IGNORECASE)


def mentions(text: str, keyword: str) -> bool:
    """Whole-word, case-insensitive containment."""
    return _keyword_pattern(keyword.lower()).search(text) is not None


def mentions_any(text: str, keywords: tuple[str, ...] | list[str]) -> bool:
    return any(mentions(text, keyword) for keyword in keywords)


def is_greeting(message: str) -> bool:
    return mentions_any(message, GREETINGS)


def derive_intent(message: str) -> str:
    if is_greeting(message):
        return "greeting"
    for intent, keywords in INTENT_KEYWORDS:
        if mentions_any(message, keywords):
            return intent
    return GENERAL_INTENT


def derive_topics(message: str) -> list[str]:
    """Topics mentioned by ``message`` in table order, or ``["general"]``."""
    topics = [topic for topic, keywords in TOPIC_KEYWORDS.items() if mentions_any(message, keywords)]
    return topics or [GENERAL_TOPIC]


def mentioned_products(message: str, product_focus: list[str]) -> list[str]:
    return [product for product in product_focus if product.strip() and mentions(message, product.strip())]
