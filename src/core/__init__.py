"""Domain models, errors and the per-item state machine."""
