"""Functions backing the OpenAPI rules of the built-in catalogue."""
