"""Federated search gateway service."""
