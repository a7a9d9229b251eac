"""TaskFlow CLI commands."""
