# Graph package for Living Triples
"""
Relationship graph over a corpus snapshot.

Connections are always found through the subject/object indices, never by
comparing every pair of triples.
"""
