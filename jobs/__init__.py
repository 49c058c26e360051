"""Background jobs (Dramatiq actors)."""
