import uuid

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.IndexRecord import IndexRecord
from shared.clients.rag.models.SearchMatch import SearchMatch
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

RECORD_ID_KEY = "recordId"


def make_point_id(record_id: str) -> str:
    """Build a deterministic UUID5 point ID for a Qdrant vector.

    Qdrant only accepts unsigned integers or UUIDs as point IDs. UUID5 maps
    the same record id to the same point so that re-ingesting overwrites
    rather than duplicates.

    Args:
        record_id (str): The record (chunk) id.

    Returns:
        str: UUID string usable as a Qdrant point ID.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_OID, record_id))


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default=None, val_type="string")
        self._distance = self.get_config_val("DISTANCE", default="Cosine", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_index_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default=None),
            EnvConfig(env_key="DISTANCE", val_type="string", default="Cosine"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_upsert(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_upsert_method(self) -> str:
        return "PUT"

    def _get_endpoint_query(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_upsert_payload(self, records: list[IndexRecord]) -> dict:
        return {
            "points": [
                {
                    "id": make_point_id(record.id),
                    "vector": record.vector,
                    "payload": {**record.metadata, RECORD_ID_KEY: record.id},
                }
                for record in records
            ]
        }

    def get_query_payload(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, str],
        include_metadata: bool,
        include_values: bool,
    ) -> dict:
        payload: dict = {
            "vector": vector,
            "limit": top_k,
            "with_payload": include_metadata,
            "with_vector": include_values,
        }
        if filters:
            payload["filter"] = {
                "must": [{"key": key, "match": {"value": value}} for key, value in filters.items()]
            }
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_matches(self, raw_response: dict) -> list[SearchMatch]:
        points = raw_response.get("result")
        if points is None:
            raise ValueError(f"Qdrant search response has no 'result'. Response keys: {list(raw_response.keys())}")
        matches: list[SearchMatch] = []
        for point in points:
            payload = dict(point.get("payload") or {})
            record_id = payload.pop(RECORD_ID_KEY, None) or str(point.get("id"))
            matches.append(SearchMatch(id=record_id, score=float(point.get("score", 0.0)), metadata=payload))
        return matches

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_describe_index(self) -> dict:
        response = await self.do_request(method="GET", endpoint=self._get_endpoint_collection(), raise_on_error=True)
        return response.json().get("result", {})

    async def do_existence_check(self) -> bool:
        """Check if the collection exists.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        response = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(),
            raise_on_error=True,
        )
        return bool(response.json().get("result", {}).get("exists"))

    async def do_prepare(self, vector_size_provider) -> None:
        """Create the collection with the embedding dimension if it does not exist yet."""
        if await self.do_existence_check():
            self.logging.info("Qdrant collection %r already exists.", self._collection_name)
            return
        vector_size = await vector_size_provider()
        await self.do_request(
            method="PUT",
            json={"vectors": {"size": vector_size, "distance": self._distance}},
            endpoint=self._get_endpoint_collection(),
            raise_on_error=True,
        )
        self.logging.info("Created Qdrant collection %r (size=%d, distance=%s).", self._collection_name, vector_size, self._distance)
