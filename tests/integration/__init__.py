"""
Integration tests for memindex.

These tests exercise the index, storage backends and the memory layer
together, including persistence across restarts.
"""
