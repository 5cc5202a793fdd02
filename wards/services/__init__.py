"""Domain services: billing, allocation engine, consistency gateway."""
