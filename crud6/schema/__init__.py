"""JSON schema loading, normalization and per-context filtering."""
