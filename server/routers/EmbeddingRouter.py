from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import BatchIngestRequest, EmbeddingRequest
from server.models.responses import BatchIngestResponse, BatchItem, ChunkReportItem, EmbeddingResponse
from shared.models.document import Document, ScopeFilter

router = APIRouter(tags=["embedding"])


@router.post("/embedding")
async def store_embedding(
    request: Request,
    body: EmbeddingRequest,
    _: None = Depends(verify_api_key),
) -> EmbeddingResponse:
    """Chunk, embed and store a single document.

    Args:
        request (Request): FastAPI request (provides app.state.ingestion_service).
        body (EmbeddingRequest): JSON body with the document and its tenant scope.
        _ (None): Auth dependency result (unused).

    Returns:
        EmbeddingResponse: Chunk count and per-chunk report of the stored document.
    """
    ingestion_service = request.app.state.ingestion_service
    document = Document(
        id=body.id,
        text=body.text,
        title=body.title,
        document_id=body.document_id,
        team_id=body.team_id,
        organization_id=body.organization_id,
        source_metadata=body.source_metadata,
    )
    result = await ingestion_service.ingest(document, max_chunk_size=body.max_chunk_size, overlap=body.overlap)
    return EmbeddingResponse(
        message="Embedding stored successfully!",
        document_id=result.document_id,
        title=result.title,
        chunk_count=result.chunk_count,
        per_chunk=[ChunkReportItem(**report.model_dump()) for report in result.per_chunk],
    )


@router.post("/chunk-and-embed")
@router.post("/ingest")
async def ingest_documents(
    request: Request,
    body: BatchIngestRequest,
    _: None = Depends(verify_api_key),
) -> BatchIngestResponse:
    """Chunk, embed and store a batch of documents from one source.

    Documents are processed one after the other; a failing document is
    reported in the results and does not stop the batch.

    Args:
        request (Request): FastAPI request (provides app.state.ingestion_service).
        body (BatchIngestRequest): JSON body with the source, scope and documents.
        _ (None): Auth dependency result (unused).

    Returns:
        BatchIngestResponse: Totals and one result per document.
    """
    ingestion_service = request.app.state.ingestion_service
    documents = None
    if body.documents is not None:
        documents = [
            Document(
                id=item.id,
                text=item.text,
                title=item.title,
                document_id=item.document_id,
                source_metadata=item.source_metadata,
            )
            for item in body.documents
        ]
    result = await ingestion_service.ingest_batch(
        source=body.source,
        source_type=body.source_type,
        documents=documents,
        scope=ScopeFilter(team_id=body.team_id, organization_id=body.organization_id),
        max_chunk_size=body.max_chunk_size,
        overlap=body.overlap,
    )
    if result.failed == 0:
        message = "All documents stored successfully!"
    else:
        message = f"{result.succeeded} of {result.total} documents stored."
    return BatchIngestResponse(
        message=message,
        source=result.source,
        source_type=result.source_type,
        total=result.total,
        succeeded=result.succeeded,
        failed=result.failed,
        results=[BatchItem.model_validate(item.model_dump()) for item in result.results],
    )
