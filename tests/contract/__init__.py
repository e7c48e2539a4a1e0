"""API contract tests.

These tests validate that public endpoints conform to the agreed request and
response shapes and error codes, and remain stable across releases. They run
against the FastAPI application with an in-process backend.
"""
