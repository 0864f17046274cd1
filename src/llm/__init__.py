"""AI service clients and the retrying call wrapper."""
