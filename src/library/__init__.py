"""Library scanning and tag reading collaborators."""
