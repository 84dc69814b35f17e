# CLI package for Living Triples
"""
Command-line interface and pipeline orchestration.

Commands:
    livingtriples run    — Run the pipeline over named files
    livingtriples merge  — Merge previously written reports
"""
