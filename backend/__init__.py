"""YektaYar backend: database readiness gate and startup wiring."""
