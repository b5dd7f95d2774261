"""Protocol engine, script interpreter and flashing orchestration."""
