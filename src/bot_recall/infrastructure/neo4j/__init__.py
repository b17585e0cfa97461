from .driver import connect_neo4j_driver, neo4j_driver
from .store import Neo4jDocumentStore
from .vector_index import Neo4jVectorIndex

__all__ = ["Neo4jDocumentStore", "Neo4jVectorIndex", "connect_neo4j_driver", "neo4j_driver"]
