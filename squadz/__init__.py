"""SQUADZ platform packages."""
