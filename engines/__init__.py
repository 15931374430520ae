"""Embedding providers, cache and similarity ranking for memlink."""
