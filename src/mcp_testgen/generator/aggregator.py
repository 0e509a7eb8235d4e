"""Response aggregator — turns streamed model output into a validated test case.

Model output that cannot be decoded, or decodes to the wrong shape, is replaced
with a fixed single-step test so one bad response never aborts a batch.
"""

import json
import logging
import re
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcp_testgen.parser.base import Endpoint

logger = logging.getLogger(__name__)

FENCED_JSON_RE = re.compile(r"^\s*```(?:json)?\s*\n(.*?)```\s*$", re.DOTALL)


class Step(BaseModel):
    """One action of a generated test case and the result it should produce."""

    model_config = ConfigDict(populate_by_name=True)

    action: str
    expected_result: str = Field(alias="expectedResult")


class GeneratedTestCase(BaseModel):
    """A model-drafted test case: a name and at least one step."""

    model_config = ConfigDict(populate_by_name=True)

    test_case_name: str = Field(alias="testCaseName")
    steps: list[Step] = Field(min_length=1)


def fallback_test_case(endpoint: Endpoint) -> GeneratedTestCase:
    """The canonical test case used when model output is unusable."""
    return GeneratedTestCase(
        test_case_name=f"{endpoint.method} {endpoint.path} Default Test",
        steps=[Step(action="Verify response status", expected_result="200 OK")],
    )


def aggregate(fragments: Iterable[str], endpoint: Endpoint) -> GeneratedTestCase:
    """Concatenate the fragments and decode them into a GeneratedTestCase.

    Falls back to :func:`fallback_test_case` on invalid JSON, a non-object
    payload, or missing/empty ``steps``.
    """
    buffer = "".join(fragments)
    return parse_test_case(buffer, endpoint)


def parse_test_case(text: str, endpoint: Endpoint) -> GeneratedTestCase:
    """Decode one complete model response for ``endpoint``."""
    match = FENCED_JSON_RE.match(text)
    if match:
        text = match.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(
            f"AI response for {endpoint.method} {endpoint.path} is not valid JSON ({e}). Using default test."
        )
        return fallback_test_case(endpoint)

    if not isinstance(data, dict):
        logger.warning(
            f"AI response for {endpoint.method} {endpoint.path} is not a JSON object. Using default test."
        )
        return fallback_test_case(endpoint)

    data.setdefault("testCaseName", f"{endpoint.method} {endpoint.path}")
    try:
        return GeneratedTestCase.model_validate(data)
    except ValidationError as e:
        logger.warning(
            f"AI response for {endpoint.method} {endpoint.path} was not in the expected format "
            f"({e.error_count()} errors). Using default test."
        )
        return fallback_test_case(endpoint)
