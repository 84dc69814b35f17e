# Enrichment package for Living Triples
"""
Optional knowledge validation.

A validator is a plain list of trusted concepts. Its absence changes
nothing except the validation bonus.
"""
