import json
from pathlib import Path

import pytest

from mcp_testgen.errors import ProviderError
from mcp_testgen.llm import LlmProvider

FIXTURES = Path(__file__).parent / "fixtures"


def make_response(name: str) -> str:
    return json.dumps({
        "testCaseName": name,
        "steps": [{"action": f"Call {name}", "expectedResult": "200 OK"}],
    })


class FakeProvider(LlmProvider):
    """Replays canned responses, one per generate() call, split into fragments.

    An exception in ``responses`` is raised from generate() instead.
    """

    def __init__(self, responses, name="fake", fragment_size=10):
        self.name = name
        self.responses = list(responses)
        self.fragment_size = fragment_size
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        size = self.fragment_size
        return iter([response[i:i + size] for i in range(0, len(response), size)])


@pytest.fixture
def spec_file():
    return FIXTURES / "openapi.json"


@pytest.fixture
def empty_spec_file():
    return FIXTURES / "empty.json"


@pytest.fixture
def two_endpoint_spec(tmp_path):
    path = tmp_path / "two.json"
    path.write_text(json.dumps({
        "openapi": "3.0.0",
        "paths": {
            "/items": {"get": {}},
            "/items/{id}": {"delete": {}},
        },
    }))
    return path


@pytest.fixture
def transport_error():
    return ProviderError("groq: Connection error.")
