from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SearchRequest
from server.models.responses import SearchResponse, SearchResultItem
from shared.models.document import ScopeFilter

router = APIRouter(prefix="/search", tags=["search"])


@router.post("")
async def search(
    request: Request,
    body: SearchRequest,
    _: None = Depends(verify_api_key),
) -> SearchResponse:
    """Answer a natural-language query from the stored chunks of one tenant.

    Args:
        request (Request): FastAPI request (provides app.state.query_service).
        body (SearchRequest): JSON body with query, tenant scope, topK and generateAnswer.
        _ (None): Auth dependency result (unused).

    Returns:
        SearchResponse: The answer and the ranked source chunks.
    """
    query_service = request.app.state.query_service
    result = await query_service.answer(
        query=body.query,
        scope=ScopeFilter(team_id=body.team_id, organization_id=body.organization_id),
        top_k=body.top_k,
        generate_answer=body.generate_answer,
    )
    return SearchResponse(
        query=body.query,
        answer=result.answer,
        results=[SearchResultItem.model_validate(source.model_dump()) for source in result.sources],
        total=len(result.sources),
    )
