# Evolution package for Living Triples
"""
Neighbour-count survival generations.

Each pass reads one consistent snapshot and returns a new corpus.
"""
