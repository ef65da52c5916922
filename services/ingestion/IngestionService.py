"""Ingestion service.

Splits a document's text into overlapping chunks, embeds every chunk via the
EmbedClient and upserts the vectors with their metadata into the vector index.
Chunks are processed concurrently with bounded parallelism; a document counts
as stored only when all of its chunks were upserted.
"""

import asyncio
from datetime import datetime, timezone

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.ChunkMetadata import ChunkMetadata
from shared.clients.rag.models.IndexRecord import IndexRecord
from shared.exceptions import ExternalServiceError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.text_chunker import split_text
from shared.helper.validation import require_fields
from shared.models.config import PipelineConfig
from shared.models.document import Chunk, Document, ScopeFilter
from shared.models.ingestion import BatchIngestResult, BatchItemResult, ChunkReport, IngestResult

INGEST_ERROR_SUMMARY = "Failed to generate or store embedding."


def build_chunks(document: Document, max_chunk_size: int, overlap: int, lookback: int) -> list[Chunk]:
    """Split a validated document into Chunk models with contiguous indices.

    Args:
        document (Document): The document; id and text must be set.
        max_chunk_size (int): Maximum characters per chunk.
        overlap (int): Characters shared by consecutive chunks.
        lookback (int): Boundary search window before the size limit.

    Returns:
        list[Chunk]: Ordered chunks of the document.
    """
    pieces = split_text(document.text, max_chunk_size=max_chunk_size, overlap=overlap, lookback=lookback)
    total = len(pieces)
    return [
        Chunk(
            chunk_id=Chunk.make_chunk_id(document.id, index),
            document_id=document.resolved_document_id,
            index=index,
            total_chunks=total,
            text=piece,
            byte_length=len(piece.encode("utf-8")),
        )
        for index, piece in enumerate(pieces)
    ]


class IngestionService:
    """Orchestrates chunk -> embed -> upsert for single documents and batches."""

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
        pipeline_config: PipelineConfig | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self._rag_client = rag_client
        self._config = pipeline_config or PipelineConfig.from_helper_config(helper_config)

    ##########################################
    ############### VALIDATION ###############
    ##########################################

    def validate_document(self, document: Document, multi_document: bool = False) -> None:
        """Check the fields the configured request schema requires.

        Args:
            document (Document): The inbound document.
            multi_document (bool): Batch mode, where documentId is required as well.

        Raises:
            ValidationError: Naming every missing field.
        """
        fields: dict[str, object] = {"text": document.text, "id": document.id}
        if self._config.require_title:
            fields["title"] = document.title
        if self._config.tenant_isolation:
            fields["teamId"] = document.team_id
            fields["organizationId"] = document.organization_id
        if multi_document:
            fields["documentId"] = document.document_id
        require_fields(fields, message="Missing required document fields.")

    ##########################################
    ################ CORE ####################
    ##########################################

    async def ingest(
        self,
        document: Document,
        max_chunk_size: int | None = None,
        overlap: int | None = None,
        multi_document: bool = False,
        source: str | None = None,
        source_type: str | None = None,
    ) -> IngestResult:
        """Store a single document as embedded chunks.

        Args:
            document (Document): The inbound document.
            max_chunk_size (int | None): Overrides the configured chunk size.
            overlap (int | None): Overrides the configured chunk overlap.
            multi_document (bool): Batch mode; documentId becomes required.
            source (str | None): Batch source, stored in the chunk metadata.
            source_type (str | None): Batch source type, stored in the chunk metadata.

        Returns:
            IngestResult: Chunk count and per-chunk report.

        Raises:
            ValidationError: If required fields are missing or chunk parameters are invalid.
            ExternalServiceError: If any embedding or upsert call failed. Chunks stored
                before the failure stay in the index.
        """
        self.validate_document(document, multi_document=multi_document)
        chunk_size = max_chunk_size if max_chunk_size is not None else self._config.chunk_size
        chunk_overlap = overlap if overlap is not None else self._config.chunk_overlap
        if chunk_size < 1 or chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValidationError(
                f"Invalid chunk parameters: maxChunkSize={chunk_size}, overlap={chunk_overlap}. "
                "maxChunkSize must be at least 1 and overlap must be between 0 and maxChunkSize - 1."
            )

        await self._describe_index()

        chunks = build_chunks(document, chunk_size, chunk_overlap, self._config.chunk_lookback)
        self.logging.info(
            "Ingesting document id=%s ('%s'): %d chunk(s).",
            document.id, document.title, len(chunks),
        )

        created_at = datetime.now(timezone.utc).isoformat()
        sem = asyncio.Semaphore(max(1, self._config.ingest_concurrency))
        results = await asyncio.gather(
            *[
                self._store_chunk(chunk, document, created_at, sem, source, source_type)
                for chunk in chunks
            ],
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            first = failures[0]
            self.logging.error(
                "Ingestion failed for document id=%s: %d of %d chunk(s) failed. First error: %s",
                document.id, len(failures), len(chunks), first,
            )
            details = first.details if isinstance(first, ExternalServiceError) and first.details else str(first)
            raise ExternalServiceError(
                summary=INGEST_ERROR_SUMMARY,
                details=f"{len(failures)} of {len(chunks)} chunk(s) failed: {details}",
                service=first.service if isinstance(first, ExternalServiceError) else "",
            ) from first

        self.logging.info(
            "Stored document id=%s ('%s'): %d chunk(s) upserted.",
            document.id, document.title, len(chunks), color="green",
        )
        return IngestResult(
            document_id=document.resolved_document_id,
            title=document.title,
            chunk_count=len(chunks),
            per_chunk=[
                ChunkReport(chunk_id=chunk.chunk_id, chunk_index=chunk.index, chunk_size=len(chunk.text))
                for chunk in chunks
            ],
        )

    async def ingest_batch(
        self,
        source: str | None,
        source_type: str | None,
        documents: list[Document] | None,
        scope: ScopeFilter,
        max_chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> BatchIngestResult:
        """Store a batch of documents from one source.

        Each document is isolated: a document that fails validation or hits a
        provider error is reported in the itemized result and the remaining
        documents are still processed.

        Args:
            source (str | None): Identifier of the source the documents come from.
            source_type (str | None): Kind of source (e.g. "notion", "upload").
            documents (list[Document] | None): The documents to store.
            scope (ScopeFilter): Tenant scope applied to every document.
            max_chunk_size (int | None): Overrides the configured chunk size.
            overlap (int | None): Overrides the configured chunk overlap.

        Returns:
            BatchIngestResult: Totals and per-document outcomes.

        Raises:
            ValidationError: If the batch envelope (source, sourceType, documents, scope) is incomplete.
        """
        envelope: dict[str, object] = {"source": source, "sourceType": source_type, "documents": documents}
        if self._config.tenant_isolation:
            envelope["teamId"] = scope.team_id
            envelope["organizationId"] = scope.organization_id
        require_fields(envelope, message="Missing required batch fields.")

        self.logging.info("Ingesting batch of %d document(s) from %s '%s'.", len(documents), source_type, source)

        items: list[BatchItemResult] = []
        for document in documents:
            scoped = document.model_copy(
                update={"team_id": scope.team_id, "organization_id": scope.organization_id}
            )
            items.append(await self._ingest_batch_item(scoped, max_chunk_size, overlap, source, source_type))

        succeeded = sum(1 for item in items if item.status == "ok")
        failed = len(items) - succeeded
        self.logging.info(
            "Batch from %s '%s' complete: %d stored, %d failed.",
            source_type, source, succeeded, failed,
        )
        return BatchIngestResult(
            source=source,
            source_type=source_type,
            total=len(items),
            succeeded=succeeded,
            failed=failed,
            results=items,
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _ingest_batch_item(
        self,
        document: Document,
        max_chunk_size: int | None,
        overlap: int | None,
        source: str,
        source_type: str,
    ) -> BatchItemResult:
        """Ingest one batch document and convert its outcome into an item result."""
        try:
            result = await self.ingest(
                document,
                max_chunk_size=max_chunk_size,
                overlap=overlap,
                multi_document=True,
                source=source,
                source_type=source_type,
            )
        except ValidationError as exc:
            self.logging.warning("Skipping batch document id=%s: %s %s", document.id, exc.message, exc.missing_fields)
            return BatchItemResult(
                id=document.id,
                document_id=document.document_id,
                status="error",
                error=exc.message,
                missing_fields=exc.missing_fields_map() if exc.required_fields else None,
            )
        except ExternalServiceError as exc:
            return BatchItemResult(
                id=document.id,
                document_id=document.document_id,
                status="error",
                error=exc.summary,
                details=exc.details,
            )
        return BatchItemResult(
            id=document.id,
            document_id=result.document_id,
            status="ok",
            chunk_count=result.chunk_count,
            per_chunk=result.per_chunk,
        )

    async def _describe_index(self) -> None:
        """Best-effort diagnostic probe of the index; failures are logged and ignored."""
        if not self._config.describe_index:
            return
        try:
            description = await self._rag_client.do_describe_index()
            self.logging.debug("Index info for '%s': %s", self._rag_client.get_index_name(), description)
        except Exception as exc:
            self.logging.warning(
                "Could not describe index '%s': %s. Continuing with ingestion.",
                self._rag_client.get_index_name(), exc,
            )

    async def _store_chunk(
        self,
        chunk: Chunk,
        document: Document,
        created_at: str,
        sem: asyncio.Semaphore,
        source: str | None,
        source_type: str | None,
    ) -> str:
        """Embed one chunk and upsert it with its metadata.

        Returns:
            str: The chunk id.

        Raises:
            ExternalServiceError: Propagated to gather() if embedding or upsert fails.
        """
        async with sem:
            self.logging.debug("Embedding chunk %s (%d bytes).", chunk.chunk_id, chunk.byte_length)
            try:
                vector = await self._embed_client.embed_text(chunk.text)
            except Exception as exc:
                self.logging.error("Embedding failed for chunk %s: %s", chunk.chunk_id, exc)
                raise

            metadata = ChunkMetadata(
                text=chunk.text,
                documentId=chunk.document_id,
                title=document.title,
                teamId=document.team_id,
                organizationId=document.organization_id,
                chunkIndex=chunk.index,
                chunkTotal=chunk.total_chunks,
                createdAt=created_at,
                source=source,
                sourceType=source_type,
            )
            record = IndexRecord(
                id=chunk.chunk_id,
                vector=vector,
                metadata=metadata.to_index_metadata(extra=document.source_metadata),
            )
            try:
                await self._rag_client.do_upsert([record])
            except Exception as exc:
                self.logging.error("Upsert failed for chunk %s: %s", chunk.chunk_id, exc)
                raise
            return chunk.chunk_id
