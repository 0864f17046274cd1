"""Public engine facade."""
