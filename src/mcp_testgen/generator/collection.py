"""Collection assembler — builds a Postman v2.1 collection from generated test cases."""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from mcp_testgen.generator.aggregator import GeneratedTestCase
from mcp_testgen.parser.base import Endpoint

POSTMAN_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"
BASE_URL_VAR = "{{BASE_URL}}"


class Header(BaseModel):
    key: str
    value: str


class Url(BaseModel):
    raw: str
    host: list[str]
    path: list[str]


class Request(BaseModel):
    method: str
    header: list[Header]
    url: Url


class Script(BaseModel):
    type: str = "text/javascript"
    exec: list[str]


class Event(BaseModel):
    listen: str = "test"
    script: Script


class CollectionItem(BaseModel):
    """One request plus its test script."""

    name: str
    request: Request
    event: list[Event]


class CollectionInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_version: str = Field(default=POSTMAN_SCHEMA, alias="schema")


class Collection(BaseModel):
    """A Postman collection; ``item`` keeps endpoint order."""

    info: CollectionInfo
    item: list[CollectionItem] = []


def to_item(endpoint: Endpoint, test_case: GeneratedTestCase) -> CollectionItem:
    """Build the collection item for one endpoint and its generated test case."""
    segments = endpoint.path.split("/")
    if segments and segments[0] == "":
        segments = segments[1:]

    return CollectionItem(
        name=test_case.test_case_name,
        request=Request(
            method=endpoint.method,
            header=[Header(key="Content-Type", value="application/json")],
            url=Url(raw=f"{BASE_URL_VAR}{endpoint.path}", host=[BASE_URL_VAR], path=segments),
        ),
        event=[Event(script=Script(exec=_assertion_lines(test_case)))],
    )


def _assertion_lines(test_case: GeneratedTestCase) -> list[str]:
    """One placeholder pm.test line per step, numbered from 1."""
    lines = []
    for idx, step in enumerate(test_case.steps, start=1):
        title = json.dumps(f"Step {idx}: {step.action}")
        expected = " ".join(step.expected_result.splitlines())
        lines.append(
            f"pm.test({title}, function() {{ pm.response.to.have.status(200); }}); "
            f"// Placeholder assertion for: {expected}"
        )
    return lines


class CollectionAssembler:
    """Accumulates collection items in the order they are appended."""

    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        self.collection = Collection(
            info=CollectionInfo(name=f"Generated API Test Collection ({provider_name})")
        )

    def append(self, item: CollectionItem) -> None:
        self.collection.item.append(item)

    def to_dict(self) -> dict:
        return self.collection.model_dump(by_alias=True)

    def save(self, output_dir: str | Path) -> Path:
        """Write ``{"collection": ...}`` to ``<provider>_combined_collection.json``.

        Creates the directory if needed and overwrites any previous run.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        file_path = output_dir / f"{self.provider_name}_combined_collection.json"
        file_path.write_text(
            json.dumps({"collection": self.to_dict()}, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        return file_path
