"""Small shared helpers (clock, client fingerprinting)."""
