"""Property-based tests using Hypothesis.

These tests use generative testing to explore edge cases:
- Collection fingerprints under reordering
- Slug assignment uniqueness
- Pagination and tag ranking over arbitrary collections

To run property tests:
    pytest tests/property/ -v --hypothesis-show-statistics

Requires:
    hypothesis>=6.100.0
"""
