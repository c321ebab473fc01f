"""Toolkit-agnostic interaction layer (controllers only, no widget code)."""
