# Living Triples
# Knowledge Triple Extraction & Evolutionary Scoring Engine

"""
Core invariant: every triple carries a deterministic content identity and a
fitness that always stays inside [0, 1].

Documents are normalized, scanned by a declarative catalogue of lexical
rules, annotated with explainable confidence, linked into a relationship
graph, evolved through neighbour-count survival generations, and summarized
as harmonic signatures. Independent runs can be merged afterwards.
"""

__version__ = "0.1.0"
