"""Centralized Cypher query definitions.

Every query used by the Neo4j adapters is built here and returned as a
``(query, params)`` tuple.
"""

import re
from typing import Any, LiteralString, cast

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Characters with meaning in Lucene query syntax
_LUCENE_SPECIAL = re.compile(r'([+\-!(){}\[\]^"~*?:\\/]|&&|\|\|)')


def safe_identifier(name: str) -> str:
    """Index names are interpolated into DDL, so only plain identifiers pass."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid Neo4j identifier: {name!r}")
    return name


def escape_lucene(text: str) -> str:
    return _LUCENE_SPECIAL.sub(r"\\\1", text)


def fulltext_query(text: str) -> str:
    """OR together the escaped terms of a free-text user message."""
    terms = [escape_lucene(term) for term in text.split() if term.strip()]
    return " OR ".join(terms)


class SchemaQueries:
    @staticmethod
    def constraints() -> list[LiteralString]:
        return [
            "CREATE CONSTRAINT fragment_chunk_id IF NOT EXISTS "
            "FOR (f:KnowledgeFragment) REQUIRE f.chunk_id IS UNIQUE",
            "CREATE CONSTRAINT bot_profile_scope IF NOT EXISTS "
            "FOR (b:BotProfile) REQUIRE b.bot_scope IS UNIQUE",
            "CREATE CONSTRAINT customer_memory_key IF NOT EXISTS "
            "FOR (c:CustomerMemory) REQUIRE (c.customer_id, c.bot_scope) IS UNIQUE",
        ]

    @staticmethod
    def vector_index(index_name: str, dimensions: int) -> tuple[LiteralString, dict[str, Any]]:
        query = f"""
        CREATE VECTOR INDEX {safe_identifier(index_name)} IF NOT EXISTS
        FOR (f:KnowledgeFragment) ON (f.embedding)
        OPTIONS {{indexConfig: {{
            `vector.dimensions`: {int(dimensions)},
            `vector.similarity_function`: 'cosine'
        }}}}
        """
        return cast(LiteralString, query), {}

    @staticmethod
    def fulltext_index(index_name: str) -> tuple[LiteralString, dict[str, Any]]:
        query = f"""
        CREATE FULLTEXT INDEX {safe_identifier(index_name)} IF NOT EXISTS
        FOR (f:KnowledgeFragment) ON EACH [f.content, f.title, f.keywords_text]
        """
        return cast(LiteralString, query), {}


class FragmentQueries:
    """Knowledge fragment reads and writes."""

    @staticmethod
    def find_by_scope(bot_scope: str) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (f:KnowledgeFragment {bot_scope: $bot_scope})
        RETURN f
        ORDER BY f.chunk_id
        """
        return query, {"bot_scope": bot_scope}

    @staticmethod
    def find_with_embedding(bot_scope: str, model: str | None = None) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (f:KnowledgeFragment {bot_scope: $bot_scope})
        WHERE f.embedding IS NOT NULL AND size(f.embedding) > 0
          AND ($model IS NULL OR f.embedding_model = $model)
        RETURN f
        """
        return query, {"bot_scope": bot_scope, "model": model}

    @staticmethod
    def vector_search(
        index_name: str,
        bot_scope: str,
        embedding: list[float],
        num_candidates: int,
        limit: int,
        scope_overfetch: int = 1,
    ) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        CALL db.index.vector.queryNodes($index_name, $num_candidates, $embedding)
        YIELD node, score
        WHERE node.bot_scope = $bot_scope
        RETURN node AS f, score
        ORDER BY score DESC
        LIMIT $limit
        """
        return query, {
            "index_name": index_name,
            "num_candidates": num_candidates * max(1, scope_overfetch),
            "embedding": embedding,
            "bot_scope": bot_scope,
            "limit": limit,
        }

    @staticmethod
    def text_search(index_name: str, bot_scope: str, text: str, limit: int) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        CALL db.index.fulltext.queryNodes($index_name, $text)
        YIELD node, score
        WHERE node.bot_scope = $bot_scope
        RETURN node AS f, score
        ORDER BY score DESC
        LIMIT $limit
        """
        return query, {"index_name": index_name, "text": text, "bot_scope": bot_scope, "limit": limit}

    @staticmethod
    def upsert_many(bot_scope: str, rows: list[dict[str, Any]]) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        UNWIND $rows AS row
        MERGE (f:KnowledgeFragment {chunk_id: row.chunk_id})
        SET f += row, f.bot_scope = $bot_scope, f.updated_at = datetime()
        RETURN count(f) AS written
        """
        return query, {"bot_scope": bot_scope, "rows": rows}

    @staticmethod
    def needing_embedding(model: str, limit: int) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (f:KnowledgeFragment)
        WHERE f.embedding IS NULL OR f.embedding_model IS NULL OR f.embedding_model <> $model
        RETURN f
        LIMIT $limit
        """
        return query, {"model": model, "limit": limit}

    @staticmethod
    def set_embedding(chunk_id: str, embedding: list[float], model: str) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (f:KnowledgeFragment {chunk_id: $chunk_id})
        SET f.embedding = $embedding, f.embedding_model = $model, f.updated_at = datetime()
        """
        return query, {"chunk_id": chunk_id, "embedding": embedding, "model": model}


class CustomerMemoryQueries:
    @staticmethod
    def get(customer_id: str, bot_scope: str) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (c:CustomerMemory {customer_id: $customer_id, bot_scope: $bot_scope})
        RETURN c.payload AS payload, c.version AS version
        """
        return query, {"customer_id": customer_id, "bot_scope": bot_scope}

    @staticmethod
    def upsert_versioned(
        customer_id: str,
        bot_scope: str,
        expected_version: int,
        payload: str,
        turn_count: int,
        last_updated: str,
    ) -> tuple[LiteralString, dict[str, Any]]:
        """Write only when the stored version still equals ``expected_version``."""
        query: LiteralString = """
        MERGE (c:CustomerMemory {customer_id: $customer_id, bot_scope: $bot_scope})
        ON CREATE SET c.version = 0
        WITH c
        WHERE c.version = $expected_version
        SET c.payload = $payload,
            c.version = $expected_version + 1,
            c.turn_count = $turn_count,
            c.last_updated = datetime($last_updated)
        RETURN c.version AS version
        """
        return query, {
            "customer_id": customer_id,
            "bot_scope": bot_scope,
            "expected_version": expected_version,
            "payload": payload,
            "turn_count": turn_count,
            "last_updated": last_updated,
        }


class BotProfileQueries:
    @staticmethod
    def get(bot_scope: str) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (b:BotProfile {bot_scope: $bot_scope})
        RETURN b
        """
        return query, {"bot_scope": bot_scope}
