"""Wire models for external storage services."""
