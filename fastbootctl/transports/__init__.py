"""USB transport bindings."""
