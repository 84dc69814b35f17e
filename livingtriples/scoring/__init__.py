# Scoring package for Living Triples
"""
Explainable initial confidence.

Every confidence is a sum of named components, each with a reason.
"""
