"""FastAPI application entry point for the embedding bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.exceptions import ExternalServiceError, ValidationError
from shared.models.config import PipelineConfig
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from services.ingestion.IngestionService import IngestionService
from server.core.QueryService import QueryService
from server.routers.EmbeddingRouter import router as embedding_router
from server.routers.HealthRouter import router as health_router
from server.routers.QueryRouter import router as query_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    helper_config: HelperConfig = app.state.helper_config

    embed_client = app.state.embed_client or EmbedClientManager(helper_config=helper_config).get_client()
    rag_client = app.state.rag_client or RAGClientManager(helper_config=helper_config).get_client()
    llm_client = app.state.llm_client or LLMClientManager(helper_config=helper_config).get_client()
    clients = [client for client in (embed_client, rag_client, llm_client) if client is not None]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    app.state.embed_client = embed_client
    app.state.rag_client = rag_client
    app.state.llm_client = llm_client

    pipeline_config = app.state.pipeline_config or PipelineConfig.from_helper_config(helper_config)
    app.state.pipeline_config = pipeline_config

    app.state.ingestion_service = IngestionService(
        helper_config=helper_config,
        embed_client=embed_client,
        rag_client=rag_client,
        pipeline_config=pipeline_config,
    )
    app.state.query_service = QueryService(
        helper_config=helper_config,
        embed_client=embed_client,
        rag_client=rag_client,
        llm_client=llm_client,
        pipeline_config=pipeline_config,
    )

    if helper_config.get_bool_val("APP_STARTUP_HEALTHCHECK", default=True):
        await check_connections(embed_client, rag_client, llm_client)
    await rag_client.do_prepare(vector_size_provider=embed_client.do_fetch_embedding_vector_size)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


async def check_connections(
    embed_client: EmbedClientInterface,
    rag_client: RAGClientInterface,
    llm_client: LLMClientInterface | None,
) -> None:
    """Check connectivity to all configured providers on startup.

    LLM failures are non-fatal (searches still return sources, answers will fail).
    Embedding and index failures are fatal: nothing can be stored or retrieved without them.

    Raises:
        Exception: If the embedding or index provider is not reachable.
    """
    for client in (embed_client, rag_client):
        result = await client.do_healthcheck()
        if not result.is_success:
            raise Exception(
                f"{client.get_client_type().upper()} client '{client.__class__.__name__}' is not reachable "
                f"(status {result.status_code}). Cannot serve requests."
            )

    if llm_client is not None:
        try:
            result = await llm_client.do_healthcheck()
        except ExternalServiceError as exc:
            logging.warning("LLM client is not reachable: %s. Answer generation may fail.", exc)
            return
        if not result.is_success:
            logging.warning(
                "LLM client '%s' is not reachable (status %d). Answer generation may fail.",
                llm_client.__class__.__name__,
                result.status_code,
            )


##########################################
########### EXCEPTION HANDLERS ###########
##########################################

async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    logging.warning("Rejected %s %s: %s %s", request.method, request.url.path, exc.message, exc.missing_fields)
    if exc.missing_fields:
        details = f"Missing: {', '.join(exc.missing_fields)}"
    else:
        details = exc.message
    return JSONResponse(
        status_code=400,
        content={"error": exc.message, "missingFields": exc.missing_fields_map(), "details": details},
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logging.warning("Rejected malformed body on %s %s.", request.method, request.url.path)
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body.", "details": jsonable_encoder(exc.errors())},
    )


async def handle_external_service_error(request: Request, exc: ExternalServiceError) -> JSONResponse:
    logging.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": exc.summary, "details": exc.details})


def create_app(
    helper_config: HelperConfig | None = None,
    embed_client: EmbedClientInterface | None = None,
    rag_client: RAGClientInterface | None = None,
    llm_client: LLMClientInterface | None = None,
    pipeline_config: PipelineConfig | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Clients left as None are created from env configuration during startup.

    Args:
        helper_config (HelperConfig | None): Configuration source; defaults to the environment.
        embed_client (EmbedClientInterface | None): Embedding provider client.
        rag_client (RAGClientInterface | None): Vector index client.
        llm_client (LLMClientInterface | None): Generation client; generation stays disabled if none is configured.
        pipeline_config (PipelineConfig | None): Chunking and request options.

    Returns:
        FastAPI: The configured application.
    """
    helper_config = helper_config or HelperConfig(logger=logging)

    app = FastAPI(
        title="embedding_bridge",
        description=(
            "Stores documents as embedded text chunks in a vector index and answers "
            "tenant-scoped questions from them. Documents are ingested via POST /embedding "
            "or POST /ingest and queried via POST /search."
        ),
        version=app_version,
        lifespan=lifespan,
    )
    app.state.helper_config = helper_config
    app.state.embed_client = embed_client
    app.state.rag_client = rag_client
    app.state.llm_client = llm_client
    app.state.pipeline_config = pipeline_config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=helper_config.get_list_val("APP_CORS_ORIGINS", default=["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, handle_validation_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(ExternalServiceError, handle_external_service_error)

    app.include_router(health_router)
    app.include_router(embedding_router)
    app.include_router(query_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("APP_PORT", "4000"))
    logging.info(
        "Starting embedding_bridge API Server v%s from root dir: %s on port %d...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
        port,
    )
    uvicorn.run(app, host="0.0.0.0", port=port)
