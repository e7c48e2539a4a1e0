"""Federated search orchestration across domains."""
