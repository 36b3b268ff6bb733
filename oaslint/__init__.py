"""oaslint: a linting and policy engine for OpenAPI specifications."""

__version__ = "0.4.0"
