"""Explicit save signals embedded in a bot reply.

Two forms are understood:

* inline tags ``[SAVE:field=value]``
* a trailing block ``|||DATA_START|||{"field": "value"}|||DATA_END|||``

Both are removed from the text shown to the customer. The values become
direct facts.
"""

import json
import re
from dataclasses import dataclass, field

from bot_recall.core.logging import get_logger
from bot_recall.domain.models import FactValue

logger = get_logger(__name__)

SAVE_TAG = re.compile(r"\[SAVE:([^=\]]+)=([^\]]+)\]")
ANY_SAVE_TAG = re.compile(r"\[SAVE:[^\]]+\]")
DATA_START = "|||DATA_START|||"
DATA_END = "|||DATA_END|||"
_SPACES = re.compile(r"[ \t]{2,}")


@dataclass
class SaveCommands:
    reply: str
    facts: dict[str, FactValue] = field(default_factory=dict)


def _split_data_block(text: str) -> tuple[str, str | None]:
    start = text.find(DATA_START)
    if start == -1:
        return text, None
    body_start = start + len(DATA_START)
    end = text.find(DATA_END, body_start)
    payload = text[body_start:] if end == -1 else text[body_start:end]
    tail = "" if end == -1 else text[end + len(DATA_END) :]
    return text[:start] + tail, payload


def _data_facts(payload: str) -> dict[str, FactValue]:
    try:
        data = json.loads(payload.strip())
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed data block: {e.msg}")
        return {}
    if not isinstance(data, dict):
        return {}

    facts: dict[str, FactValue] = {}
    for key, value in data.items():
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        elif not isinstance(value, int | float | bool):
            continue
        facts[str(key).strip()] = value
    return facts


def parse_save_commands(response: str, customer_fields: list[str] | None = None) -> SaveCommands:
    """Strip save signals from ``response`` and collect their values.

    When ``customer_fields`` is non-empty only those fields are kept; other
    signals are still removed from the reply.
    """
    text, payload = _split_data_block(response or "")

    facts: dict[str, FactValue] = {}
    for match in SAVE_TAG.finditer(text):
        name, value = match.group(1).strip(), match.group(2).strip()
        if name and value:
            facts[name] = value
    if payload is not None:
        facts.update(_data_facts(payload))

    if customer_fields:
        allowed = set(customer_fields)
        dropped = sorted(name for name in facts if name not in allowed)
        if dropped:
            logger.debug("Dropping save commands for unknown fields", fields=dropped)
        facts = {name: value for name, value in facts.items() if name in allowed}

    reply = ANY_SAVE_TAG.sub("", text)
    reply = "\n".join(_SPACES.sub(" ", line).strip() for line in reply.splitlines()).strip()
    return SaveCommands(reply=reply, facts=facts)
