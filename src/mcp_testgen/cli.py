"""CLI entry point for mcp-testgen."""

from pathlib import Path

import click

from mcp_testgen.config import Settings
from mcp_testgen.errors import EmptySpecError, NotFoundError, ParseError, UnsupportedProviderError
from mcp_testgen.llm import build_provider
from mcp_testgen.logging_config import setup_logging
from mcp_testgen.parser.openapi import enumerate_endpoints, load_spec
from mcp_testgen.pipeline import DoneEvent, ErrorEvent, GenerationPipeline, PartialEvent, StatusEvent


@click.group()
def main():
    """MCP Test Generator — draft API test collections from OpenAPI docs with an LLM."""
    pass


@main.command()
@click.option("--host", default=None, help="Interface to bind (default: HOST setting).")
@click.option("--port", default=None, type=int, help="Port to listen on (default: PORT setting).")
def serve(host: str | None, port: int | None):
    """Run the HTTP server."""
    import uvicorn

    from mcp_testgen.server import create_app

    settings = Settings()
    logger = setup_logging(settings.LOG_DIR, settings.LOG_LEVEL)
    try:
        app = create_app(settings, logger=logger)
    except UnsupportedProviderError as e:
        raise click.ClickException(str(e))

    host = host or settings.HOST
    port = port or settings.PORT
    logger.info(f"MCP server running with {settings.AI_PROVIDER.upper()} at http://{host}:{port}/mcp")
    uvicorn.run(app, host=host, port=port)


@main.command("list-endpoints")
@click.argument("spec", required=False)
def list_endpoints(spec: str | None):
    """Print every endpoint found in SPEC (default: SPEC_SOURCE setting)."""
    settings = Settings()
    try:
        endpoints = enumerate_endpoints(load_spec(spec or settings.SPEC_SOURCE))
    except (NotFoundError, ParseError) as e:
        raise click.ClickException(str(e))

    for ep in endpoints:
        click.echo(f"{ep.method} {ep.path}")
    click.echo(f"Found {len(endpoints)} endpoints.")


@main.command()
@click.argument("spec", required=False)
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None, help="Output directory for the collection.")
@click.option("--provider", default=None, help="AI provider: openai, groq or gemini.")
def generate(spec: str | None, output: Path | None, provider: str | None):
    """Generate a Postman collection for every endpoint in SPEC."""
    settings = Settings(AI_PROVIDER=provider) if provider else Settings()
    logger = setup_logging(settings.LOG_DIR, settings.LOG_LEVEL)

    try:
        llm = build_provider(settings)
    except UnsupportedProviderError as e:
        raise click.ClickException(str(e))

    pipeline = GenerationPipeline(
        spec or settings.SPEC_SOURCE,
        provider=llm,
        output_dir=output or settings.OUTPUT_DIR,
        logger=logger,
    )
    try:
        endpoints = pipeline.prepare()
    except (EmptySpecError, NotFoundError, ParseError) as e:
        raise click.ClickException(str(e))

    for event in pipeline.run(endpoints):
        if isinstance(event, StatusEvent):
            click.echo(event.msg)
        elif isinstance(event, PartialEvent):
            continue
        elif isinstance(event, DoneEvent):
            click.echo(f"Done! Saved {len(event.collection['item'])} tests to {event.saved_to}")
        elif isinstance(event, ErrorEvent):
            raise click.ClickException(event.error)
