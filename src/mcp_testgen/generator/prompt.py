"""Prompt builder — renders the one-shot test case prompt for an endpoint."""

from functools import lru_cache
from pathlib import Path
from string import Template

from mcp_testgen.parser.base import Endpoint

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


@lru_cache(maxsize=None)
def _load_template(name: str) -> Template:
    return Template((PROMPTS_DIR / name).read_text(encoding="utf-8"))


def build_prompt(endpoint: Endpoint) -> str:
    """Render the test case prompt for one endpoint.

    The prompt carries a fixed ``GET /products/:id`` example and asks for a JSON
    object with only ``testCaseName`` and ``steps``. Whether the model complies
    is checked later, by the aggregator.
    """
    template = _load_template("testcase.md")
    return template.substitute(method=endpoint.method, path=endpoint.path)
