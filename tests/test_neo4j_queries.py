"""Tests for the Cypher builders used by the Neo4j adapters."""

import pytest

from bot_recall.infrastructure.neo4j.queries import FragmentQueries, fulltext_query, safe_identifier


class TestFragmentQueries:
    def test_vector_search_over_fetches_before_the_scope_filter(self):
        query, params = FragmentQueries.vector_search(
            "fragments", "shop", [1.0, 0.0], num_candidates=50, limit=50, scope_overfetch=5
        )

        assert params["num_candidates"] == 250
        assert params["limit"] == 50
        assert query.index("queryNodes") < query.index("node.bot_scope = $bot_scope")

    def test_vector_search_without_over_fetch(self):
        _, params = FragmentQueries.vector_search("fragments", "shop", [1.0], num_candidates=20, limit=20)

        assert params["num_candidates"] == 20

    def test_embedded_fragments_are_filtered_by_model(self):
        query, params = FragmentQueries.find_with_embedding("shop", "voyage-3")

        assert "f.embedding_model = $model" in query
        assert params == {"bot_scope": "shop", "model": "voyage-3"}

    def test_model_filter_is_optional(self):
        _, params = FragmentQueries.find_with_embedding("shop")

        assert params["model"] is None


def test_identifiers_are_validated():
    assert safe_identifier("knowledge_fragment_embedding") == "knowledge_fragment_embedding"
    with pytest.raises(ValueError):
        safe_identifier("bad name; DROP")


def test_fulltext_query_escapes_lucene_syntax():
    assert fulltext_query("giao hàng (nhanh)?") == "giao OR hàng OR \\(nhanh\\)\\?"
