"""Performance benchmarks for critpoint.

This package contains benchmarks for the hot paths of batch refinement:
per-point optimizer cost and thread-pool scaling across worker counts.
"""
