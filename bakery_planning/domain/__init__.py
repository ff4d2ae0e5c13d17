"""Domain models and per-product planning logic."""
