"""Core business logic: tree model, conversion, projection and patches."""
