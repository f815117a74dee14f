"""Regeneration engine — traversal, staleness, pipeline, orchestration."""
