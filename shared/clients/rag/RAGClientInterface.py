from abc import abstractmethod
from typing import Awaitable, Callable

from shared.clients.ClientInterface import ClientInterface
from shared.clients.rag.models.IndexRecord import IndexRecord
from shared.clients.rag.models.SearchMatch import SearchMatch
from shared.exceptions import ExternalServiceError
from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_index_name(self) -> str:
        """
        Returns the name of the index / collection the client writes to.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_upsert(self) -> str:
        """
        Returns the endpoint path for upsert requests (e.g. "/vectors/upsert").
        """
        pass

    @abstractmethod
    def _get_upsert_method(self) -> str:
        """
        Returns the HTTP method used for upserts (e.g. "POST" or "PUT").
        """
        pass

    @abstractmethod
    def _get_endpoint_query(self) -> str:
        """
        Returns the endpoint path for nearest-neighbour queries (e.g. "/query").
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_upsert_payload(self, records: list[IndexRecord]) -> dict:
        """
        Builds the backend-specific request body for an upsert.

        Args:
            records (list[IndexRecord]): The records to insert or replace.

        Returns:
            dict: The payload for the upsert request.
        """
        pass

    @abstractmethod
    def get_query_payload(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, str],
        include_metadata: bool,
        include_values: bool,
    ) -> dict:
        """
        Builds the backend-specific request body for a nearest-neighbour query.

        Args:
            vector (list[float]): The query vector.
            top_k (int): Number of neighbours to return.
            filters (dict[str, str]): Equality predicates on metadata fields.
            include_metadata (bool): Whether the stored metadata should be returned.
            include_values (bool): Whether the stored vectors should be returned.

        Returns:
            dict: The payload for the query request.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_matches(self, raw_response: dict) -> list[SearchMatch]:
        """
        Extracts the ranked matches from a raw query response.

        Args:
            raw_response (dict): The raw JSON response from the query endpoint.

        Returns:
            list[SearchMatch]: Matches in the order returned by the backend.

        Raises:
            ValueError: If the response format is invalid.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_describe_index(self) -> dict:
        """Fetch descriptive information about the index (dimension, metric, status).

        Returns:
            dict: The raw description returned by the backend.
        """
        pass

    async def do_prepare(self, vector_size_provider: Callable[[], Awaitable[int]]) -> None:
        """Make sure the index is ready to receive vectors.

        Hosted indexes are created out of band, so the default does nothing.
        Backends that create collections on demand override this.

        Args:
            vector_size_provider (Callable[[], Awaitable[int]]): Resolves the embedding dimension lazily.
        """
        return None

    async def do_upsert(self, records: list[IndexRecord]) -> None:
        """Upsert records into the index.
        Inserts new records or replaces existing ones if a record with the same id already exists.

        Args:
            records (list[IndexRecord]): The records to upsert.

        Raises:
            ExternalServiceError: If the backend rejects the request.
        """
        if not records:
            return
        await self.do_request(
            method=self._get_upsert_method(),
            json=self.get_upsert_payload(records),
            endpoint=self._get_endpoint_upsert(),
            raise_on_error=True,
        )

    async def do_query(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, str] | None = None,
        include_metadata: bool = True,
        include_values: bool = False,
    ) -> list[SearchMatch]:
        """Query the index for the nearest neighbours of a vector.

        Args:
            vector (list[float]): The query vector.
            top_k (int): Number of neighbours to return.
            filters (dict[str, str] | None): Equality predicates on metadata, e.g. the tenant scope.
            include_metadata (bool): Return the stored metadata with each match.
            include_values (bool): Return the stored vectors with each match.

        Returns:
            list[SearchMatch]: Matches as ranked by the backend.

        Raises:
            ExternalServiceError: If the request fails or the response cannot be parsed.
        """
        response = await self.do_request(
            method="POST",
            json=self.get_query_payload(vector, top_k, filters or {}, include_metadata, include_values),
            endpoint=self._get_endpoint_query(),
            raise_on_error=True,
        )
        try:
            return self.extract_matches(response.json())
        except (ValueError, TypeError, AttributeError, KeyError) as exc:
            raise ExternalServiceError(
                summary="Vector index returned a malformed query response.",
                details=str(exc),
                service=self.get_client_type(),
            ) from exc
