"""Generate Postman test collections from OpenAPI documents with an LLM."""

__version__ = "0.1.0"
