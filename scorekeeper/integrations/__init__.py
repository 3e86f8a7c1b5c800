"""Backend integrations for external storage systems."""
