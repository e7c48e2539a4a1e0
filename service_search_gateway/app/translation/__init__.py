"""Translation of generic search requests into backend-native queries."""
