"""Ranking of federated results across domains."""
