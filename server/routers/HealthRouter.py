from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from server.models.responses import HealthResponse
from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import ExternalServiceError

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Liveness probe."""
    return "working"


@router.get("/health")
async def health(request: Request) -> HealthResponse:
    """Probe every configured provider.

    Returns:
        HealthResponse: "ok" when embedding and index providers answer, "degraded" otherwise.
    """
    embed = await _probe(request.app.state.embed_client)
    rag = await _probe(request.app.state.rag_client)
    llm_client = request.app.state.llm_client
    llm = await _probe(llm_client) if llm_client is not None else "disabled"
    status = "ok" if embed == "ok" and rag == "ok" else "degraded"
    return HealthResponse(status=status, embed=embed, rag=rag, llm=llm)


async def _probe(client: ClientInterface) -> str:
    try:
        response = await client.do_healthcheck()
    except ExternalServiceError:
        return "unreachable"
    return "ok" if response.is_success else f"error ({response.status_code})"
