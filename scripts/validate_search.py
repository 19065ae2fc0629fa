"""Quick validation of query expansion + ontology reranking against ChromaDB.

Run ``scripts/load_vectorstore.py`` first.
"""

from ontorag.config import get_settings
from ontorag.engine.concept_extractor import ConceptExtractor
from ontorag.engine.query_expander import QueryExpander
from ontorag.engine.reranker import Reranker
from ontorag.ontology.loader import build_graph, load_ontology_file
from ontorag.vectorstore.store import ChromaRetrievalService

QUESTIONS = [
    "for文について教えて",
    "再帰と関数の関係は？",
    "クラスの継承ってなに？",
]


def main() -> None:
    settings = get_settings()
    definition = load_ontology_file(settings.ontology_path)
    graph = build_graph(definition)

    extractor = ConceptExtractor()
    for concept_id, phrases in definition.keywords().items():
        extractor.add_keywords(concept_id, phrases)

    expander = QueryExpander(graph, extractor)
    reranker = Reranker(graph, extractor)
    service = ChromaRetrievalService()

    for question in QUESTIONS:
        print("=" * 60)
        print(f"QUESTION: {question}")
        print("=" * 60)

        expansion = expander.expand(question)
        print(f"  concepts:  {expansion.query_concepts}")
        print(f"  expanded:  {expansion.expanded_concepts}")
        print(f"  query:     {expansion.expanded_query}")
        print()

        candidates = service.search(expansion.expanded_query, top_k=5)
        for r in reranker.rerank(candidates, expansion.query_concepts):
            print(
                f"  [{r.document.title}] vector={r.similarity:.3f} "
                f"semantic={r.semantic_score:.3f} combined={r.combined_score:.3f}"
            )
            print(f"    concepts: {', '.join(r.doc_concepts)}")
        print()


if __name__ == "__main__":
    main()
