# Harmonics package for Living Triples
"""
Read-only summary statistics per concept cluster and for the whole corpus.
"""
