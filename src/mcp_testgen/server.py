"""FastAPI application exposing the spec, the endpoint list and test generation."""

import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import iterate_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from mcp_testgen import __version__
from mcp_testgen.config import Settings
from mcp_testgen.errors import EmptySpecError, NotFoundError, ParseError
from mcp_testgen.llm import LlmProvider, build_provider
from mcp_testgen.parser.openapi import load_spec
from mcp_testgen.pipeline import GenerationPipeline

NDJSON = "application/x-ndjson"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every incoming request."""

    def __init__(self, app, logger: logging.Logger):
        super().__init__(app)
        self.logger = logger

    async def dispatch(self, request: Request, call_next):
        self.logger.info(f"Incoming Request: {request.method} {request.url}")
        return await call_next(request)


def create_app(
    settings: Settings | None = None,
    provider: LlmProvider | None = None,
    logger: logging.Logger | None = None,
) -> FastAPI:
    """Build the application with its provider and logger created once, up front."""
    settings = settings or Settings()
    logger = logger or logging.getLogger("mcp_testgen")
    provider = provider or build_provider(settings)

    app = FastAPI(
        title="MCP Test Generation Server",
        description="Natural-language API test generation from OpenAPI specifications",
        version=__version__,
    )
    app.state.settings = settings
    app.state.logger = logger
    app.state.pipeline = GenerationPipeline(
        spec_source=settings.SPEC_SOURCE,
        provider=provider,
        output_dir=settings.OUTPUT_DIR,
        logger=logger,
    )
    app.add_middleware(RequestLoggingMiddleware, logger=logger)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "provider": provider.name}

    @app.get("/mcp/resources/openapi-spec")
    def openapi_spec(pipeline: GenerationPipeline = Depends(get_pipeline)):
        """Serve the OpenAPI document the generator works from."""
        try:
            spec = load_spec(pipeline.spec_source)
        except NotFoundError as e:
            logger.error(f"Error reading OpenAPI spec file: {e}")
            raise HTTPException(status_code=404, detail="Could not load OpenAPI spec.")
        except ParseError as e:
            logger.error(f"Error parsing OpenAPI spec file: {e}")
            raise HTTPException(status_code=500, detail="Could not load OpenAPI spec.")
        return spec.raw

    @app.get("/mcp/tools/list-endpoints")
    def list_endpoints(pipeline: GenerationPipeline = Depends(get_pipeline)):
        """List every (path, method) pair in the spec."""
        endpoints = _load_endpoints(pipeline, logger, allow_empty=True)
        return {"endpoints": [ep.model_dump() for ep in endpoints]}

    @app.post("/mcp/tools/generate-tests-nlp")
    def generate_tests(request: Request, pipeline: GenerationPipeline = Depends(get_pipeline)):
        """Generate a test case per endpoint, streaming progress as NDJSON."""
        endpoints = _load_endpoints(pipeline, logger, allow_empty=False)
        events = pipeline.run(endpoints)

        return StreamingResponse(ndjson_stream(events, request, logger), media_type=NDJSON)

    return app


def get_pipeline(request: Request) -> GenerationPipeline:
    return request.app.state.pipeline


def _load_endpoints(pipeline: GenerationPipeline, logger: logging.Logger, allow_empty: bool):
    try:
        if allow_empty:
            return pipeline.list_endpoints()
        return pipeline.prepare()
    except EmptySpecError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        logger.error(f"Error loading OpenAPI spec: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except ParseError as e:
        logger.error(f"Error parsing OpenAPI spec to list endpoints: {e}")
        raise HTTPException(status_code=500, detail="Could not parse spec to list endpoints.")


async def ndjson_stream(events, request: Request, logger: logging.Logger):
    """Write pipeline events as NDJSON lines; stop and close the pipeline on disconnect."""
    try:
        async for event in iterate_in_threadpool(events):
            yield event.to_line()
            if await request.is_disconnected():
                logger.info("Client disconnected, stopping test generation")
                break
    finally:
        events.close()
