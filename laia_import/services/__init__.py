"""Pipeline services: validation, reference resolution, commit and the import session."""
