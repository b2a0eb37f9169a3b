"""Session authentication and credential persistence."""
