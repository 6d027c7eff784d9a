"""Pydantic response models for routes with a fixed body shape."""
