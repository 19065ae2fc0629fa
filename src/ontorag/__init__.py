"""OntoRAG — ontology-aware query expansion and reranking for retrieval-augmented tutoring."""

__version__ = "0.1.0"
