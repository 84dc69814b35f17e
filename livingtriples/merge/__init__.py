# Merge package for Living Triples
"""
Merge and dedup of triple sets, inside a run and across runs.
"""
