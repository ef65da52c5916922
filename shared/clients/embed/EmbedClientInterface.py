from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.exceptions import ExternalServiceError
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/embeddings")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Ollama /api/embed: {"embeddings": [[...], [...]]} (already ordered)
        - OpenAI /embeddings: {"data": [{"embedding": [...], "index": 0}]} (needs sorting)

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            ExternalServiceError: If the request fails or the response holds no valid embeddings.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload(texts)
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body, raise_on_error=True)
        try:
            vectors = self.extract_embeddings_from_response(response.json())
        except (ValueError, TypeError, AttributeError, KeyError) as exc:
            raise ExternalServiceError(
                summary="Embedding provider returned a malformed response.",
                details=str(exc),
                service=self.get_client_type(),
            ) from exc
        if len(vectors) != len(texts):
            raise ExternalServiceError(
                summary="Embedding provider returned a malformed response.",
                details=f"Expected {len(texts)} vectors, got {len(vectors)}.",
                service=self.get_client_type(),
            )
        return vectors

    async def embed_text(self, text: str) -> list[float]:
        """Embed a single text and return its vector."""
        vectors = await self.do_embed([text])
        return vectors[0]

    async def do_fetch_embedding_vector_size(self) -> int:
        """Determine the vector dimension of the configured model by embedding a probe text.

        Engines with a model details endpoint may override this.

        Returns:
            int: The number of dimensions produced by the embedding model.
        """
        vector = await self.embed_text("dimension probe")
        return len(vector)
