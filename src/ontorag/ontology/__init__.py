"""Learning ontology — concepts, typed relations, traversal and loading."""

from ontorag.ontology.graph import ConceptGraph
from ontorag.ontology.loader import (
    OntologyDefinition,
    build_graph,
    load_ontology_file,
    parse_ontology,
)
from ontorag.ontology.schema import Concept, Relation

__all__ = [
    "Concept",
    "ConceptGraph",
    "OntologyDefinition",
    "Relation",
    "build_graph",
    "load_ontology_file",
    "parse_ontology",
]
