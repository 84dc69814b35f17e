# Ingestion package for Living Triples
"""
Document normalization.

Turns raw document handles into Document values, recording a Diagnostic for
every document that is skipped or falls back to plain text.
"""
