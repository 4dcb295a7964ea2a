"""Read-only admin console."""
