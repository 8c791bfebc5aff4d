"""Healthcare software marketplace service."""
