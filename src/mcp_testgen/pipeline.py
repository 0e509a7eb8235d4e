"""Generation pipeline — endpoints -> prompts -> provider -> test cases -> collection.

Endpoints are processed one at a time and each provider stream is drained
before the next endpoint starts, so collection order always matches
endpoint order. Progress is reported as a sequence of ProgressEvent objects.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from mcp_testgen.generator.aggregator import aggregate
from mcp_testgen.generator.collection import CollectionAssembler, to_item
from mcp_testgen.generator.prompt import build_prompt
from mcp_testgen.llm import LlmProvider
from mcp_testgen.parser.base import Endpoint
from mcp_testgen.parser.openapi import enumerate_endpoints, load_spec, require_endpoints


class ProgressEvent(BaseModel):
    """Base class for one line of the progress stream."""

    model_config = ConfigDict(populate_by_name=True)

    def to_line(self) -> str:
        """Serialize as one newline-terminated JSON object."""
        return self.model_dump_json(by_alias=True) + "\n"


class StatusEvent(ProgressEvent):
    step: int | str
    msg: str


class PartialEvent(ProgressEvent):
    step: str
    partial: str


class DoneEvent(ProgressEvent):
    step: str = "done"
    saved_to: str = Field(alias="savedTo")
    collection: dict


class ErrorEvent(ProgressEvent):
    error: str


class GenerationPipeline:
    """Drives test generation for every endpoint of one OpenAPI document."""

    def __init__(
        self,
        spec_source: str | Path,
        provider: LlmProvider,
        output_dir: str | Path,
        logger: logging.Logger | None = None,
    ):
        self.spec_source = spec_source
        self.provider = provider
        self.output_dir = Path(output_dir)
        self.logger = logger or logging.getLogger(__name__)

    def list_endpoints(self) -> list[Endpoint]:
        """Load the spec and return its endpoints (possibly none)."""
        return enumerate_endpoints(load_spec(self.spec_source))

    def prepare(self) -> list[Endpoint]:
        """Load the spec and return its endpoints; raises EmptySpecError if none."""
        return require_endpoints(load_spec(self.spec_source))

    def generate(self) -> Iterator[ProgressEvent]:
        """Enumerate, then stream progress for the whole run."""
        return self.run(self.prepare())

    def run(self, endpoints: list[Endpoint]) -> Iterator[ProgressEvent]:
        """Generate a test case per endpoint, yielding progress as it goes.

        The stream ends with a DoneEvent, or with a single ErrorEvent if any
        step fails. Closing the iterator stops further provider calls.
        """
        try:
            self.logger.info(f"Starting AI test generation for {len(endpoints)} endpoints...")
            yield StatusEvent(step=1, msg=f"Starting AI test generation for {len(endpoints)} endpoints...")

            assembler = CollectionAssembler(self.provider.name)
            for endpoint in endpoints:
                yield from self._process(endpoint, assembler)

            file_path = assembler.save(self.output_dir)
            self.logger.info(f"All tests generated! Saved to {file_path}")
            yield DoneEvent(saved_to=str(file_path), collection=assembler.to_dict())
        except Exception as e:
            self.logger.error(f"Error generating tests: {e}", exc_info=True)
            yield ErrorEvent(error=str(e))

    def _process(self, endpoint: Endpoint, assembler: CollectionAssembler) -> Iterator[ProgressEvent]:
        label = f"{endpoint.method} {endpoint.path}"
        prompt = build_prompt(endpoint)
        fragments = self.provider.generate(prompt)

        self.logger.info(f"Analyzing {label}...")
        yield StatusEvent(step=f"analyzing-{endpoint.path}", msg=f"Analyzing {label}...")

        received = []
        for text in fragments:
            received.append(text)
            yield PartialEvent(step=f"stream-{endpoint.path}", partial=text)

        test_case = aggregate(received, endpoint)
        self.logger.info(f"Completed AI test generation for {endpoint.path}")
        assembler.append(to_item(endpoint, test_case))
