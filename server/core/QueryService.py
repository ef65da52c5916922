from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchMatch import SearchMatch
from shared.exceptions import ExternalServiceError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.validation import require_fields
from shared.models.config import PipelineConfig
from shared.models.document import ScopeFilter
from shared.models.search import AnswerResult, SearchSource

NO_RESULTS_ANSWER = "No relevant information found."
SYSTEM_INSTRUCTION = "Answer only from the provided context; if the answer is not in the context, say so."
QUERY_ERROR_SUMMARY = "Failed to process search query."

# metadata keys mapped onto dedicated SearchSource fields
_SOURCE_FIELDS = {
    "text": "text",
    "documentId": "document_id",
    "title": "title",
    "teamId": "team_id",
    "organizationId": "organization_id",
    "chunkIndex": "chunk_index",
    "chunkTotal": "chunk_total",
}


class QueryService:
    """Handles semantic search queries: embed -> query index -> optionally generate an answer."""

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
        llm_client: LLMClientInterface | None = None,
        pipeline_config: PipelineConfig | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self._rag_client = rag_client
        self._llm_client = llm_client
        self._config = pipeline_config or PipelineConfig.from_helper_config(helper_config)

    ##########################################
    ############### CORE #####################
    ##########################################

    async def answer(
        self,
        query: str | None,
        scope: ScopeFilter,
        top_k: int | None = None,
        generate_answer: bool = True,
    ) -> AnswerResult:
        """Retrieve the chunks nearest to a query within a tenant scope and answer from them.

        Args:
            query (str | None): Natural-language question.
            scope (ScopeFilter): Tenant scope; required under tenant isolation.
            top_k (int | None): Number of neighbours, defaults to PIPELINE_SEARCH_TOP_K.
            generate_answer (bool): Ask the generation client for an answer when one is configured.

        Returns:
            AnswerResult: The answer (None when generation is skipped) and the ranked sources.

        Raises:
            ValidationError: If query or scope fields are missing, or top_k is out of range.
            ExternalServiceError: If the embedding, index or generation call fails.
        """
        fields: dict[str, object] = {"query": query}
        if self._config.tenant_isolation:
            fields["teamId"] = scope.team_id
            fields["organizationId"] = scope.organization_id
        require_fields(fields, message="Missing required search fields.")

        limit = top_k if top_k is not None else self._config.search_top_k
        if limit < 1 or limit > self._config.search_max_top_k:
            raise ValidationError(
                f"Invalid topK={limit}. topK must be between 1 and {self._config.search_max_top_k}."
            )

        self.logging.info(
            "Search: query='%s', teamId=%s, organizationId=%s, topK=%d",
            query, scope.team_id, scope.organization_id, limit,
        )

        try:
            query_vector = await self._embed_client.embed_text(query)
            self.logging.debug("Query vector dimension: %d", len(query_vector))
            matches = await self._rag_client.do_query(
                vector=query_vector,
                top_k=limit,
                filters=scope.as_filter(),
                include_metadata=True,
                include_values=False,
            )
        except ExternalServiceError as exc:
            self.logging.error("Search failed: %s", exc)
            raise ExternalServiceError(
                summary=QUERY_ERROR_SUMMARY, details=exc.details or exc.summary, service=exc.service
            ) from exc

        matches = self._filter_by_scope(matches, scope)
        if not matches:
            self.logging.info("Search returned no matches.")
            return AnswerResult(answer=NO_RESULTS_ANSWER, sources=[])

        # stable: equal scores keep the order the index returned them in
        ranked = sorted(matches, key=lambda match: match.score, reverse=True)

        answer_text = None
        if generate_answer:
            answer_text = await self._generate(query, ranked)

        self.logging.info("Search: returning %d source(s).", len(ranked))
        return AnswerResult(answer=answer_text, sources=[self._to_source(match) for match in ranked])

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _filter_by_scope(self, matches: list[SearchMatch], scope: ScopeFilter) -> list[SearchMatch]:
        """Drop matches whose stored scope contradicts the requested one.

        Under tenant isolation a match without a stored scope key is dropped as well.
        """
        expected = scope.as_filter()
        strict = self._config.tenant_isolation
        kept: list[SearchMatch] = []
        for match in matches:
            mismatched = [
                key for key, value in expected.items()
                if (key in match.metadata or strict) and match.metadata.get(key) != value
            ]
            if mismatched:
                self.logging.warning(
                    "Discarding match %s: metadata %s does not match the requested scope.",
                    match.id, mismatched,
                )
                continue
            kept.append(match)
        return kept

    async def _generate(self, query: str, matches: list[SearchMatch]) -> str | None:
        """Synthesize an answer from the retrieved chunk texts.

        Returns:
            str | None: The generated answer, or None if no generation client is configured.
        """
        if self._llm_client is None:
            self.logging.warning("Answer generation requested but no LLM engine is configured.")
            return None

        context = "\n\n".join(
            str(match.metadata.get("text")) for match in matches if match.metadata.get("text")
        )
        user_turn = f"Context:\n{context}\n\nQuestion: {query}"
        try:
            return await self._llm_client.do_generate(
                system_instruction=SYSTEM_INSTRUCTION,
                messages=[{"role": "user", "content": user_turn}],
            )
        except ExternalServiceError as exc:
            self.logging.error("Answer generation failed: %s", exc)
            raise ExternalServiceError(
                summary=QUERY_ERROR_SUMMARY, details=exc.details or exc.summary, service=exc.service
            ) from exc

    def _to_source(self, match: SearchMatch) -> SearchSource:
        fields: dict[str, object] = {}
        extra: dict[str, object] = {}
        for key, value in match.metadata.items():
            if key in _SOURCE_FIELDS:
                fields[_SOURCE_FIELDS[key]] = value
            else:
                extra[key] = value
        text = fields.get("text")
        if isinstance(text, str):
            fields["text"] = text[: self._config.search_excerpt_chars]
        return SearchSource(id=match.id, score=match.score, metadata=extra, **fields)
