"""Response schemas and domain records."""
