"""Data models for a loaded OpenAPI document and the endpoints drawn from it."""

from pydantic import BaseModel, ConfigDict


class SpecDocument(BaseModel):
    """A parsed OpenAPI document. Frozen once loaded."""

    model_config = ConfigDict(frozen=True)

    raw: dict  # the whole document, as served by the spec resource
    paths: dict  # {path: {method: operation}}


class Endpoint(BaseModel):
    """A single (method, path) pair, with the path in ``:param`` form."""

    model_config = ConfigDict(frozen=True)

    path: str  # /products/:id
    method: str  # GET / POST / PUT / DELETE / PATCH
