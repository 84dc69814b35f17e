# Extraction package for Living Triples
"""
Lexical pattern extraction.

A declarative rule catalogue is applied to each document body; structured
documents additionally yield structural triples from their decoded payload.
"""
