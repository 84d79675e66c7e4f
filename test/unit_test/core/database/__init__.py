"""Unit tests for the database layer.

Repository tests run against in-memory SQLite so no external database
service is needed.
"""
