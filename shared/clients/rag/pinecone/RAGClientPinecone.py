from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.IndexRecord import IndexRecord
from shared.clients.rag.models.SearchMatch import SearchMatch
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class RAGClientPinecone(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._host = self.get_config_val("HOST", default=None, val_type="string")
        self._index_name = self.get_config_val("INDEX", default=None, val_type="string")
        self._namespace = self.get_config_val("NAMESPACE", default="", val_type="string")
        self._control_url = self.get_config_val("CONTROL_URL", default="https://api.pinecone.io", val_type="string")
        self._api_version = self.get_config_val("API_VERSION", default="2024-07", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Pinecone"

    def get_index_name(self) -> str:
        return self._index_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="HOST", val_type="string", default=None),
            EnvConfig(env_key="INDEX", val_type="string", default=None),
            EnvConfig(env_key="NAMESPACE", val_type="string", default=""),
            EnvConfig(env_key="CONTROL_URL", val_type="string", default="https://api.pinecone.io"),
            EnvConfig(env_key="API_VERSION", val_type="string", default="2024-07"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Api-Key": self._api_key, "X-Pinecone-API-Version": self._api_version}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        # the data plane host is index specific, e.g. https://my-index-abc123.svc.pinecone.io
        host = self._host
        if not host.startswith("http://") and not host.startswith("https://"):
            host = f"https://{host}"
        return host

    def _get_endpoint_healthcheck(self) -> str:
        return "/describe_index_stats"

    def _get_endpoint_upsert(self) -> str:
        return "/vectors/upsert"

    def _get_upsert_method(self) -> str:
        return "POST"

    def _get_endpoint_query(self) -> str:
        return "/query"

    def _get_endpoint_describe_index(self) -> str:
        return f"/indexes/{self._index_name}"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def get_upsert_payload(self, records: list[IndexRecord]) -> dict:
        payload: dict = {
            "vectors": [
                {"id": record.id, "values": record.vector, "metadata": record.metadata}
                for record in records
            ]
        }
        if self._namespace:
            payload["namespace"] = self._namespace
        return payload

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
            "topK": top_k,
            "includeMetadata": include_metadata,
            "includeValues": include_values,
        }
        if filters:
            payload["filter"] = {key: {"$eq": value} for key, value in filters.items()}
        if self._namespace:
            payload["namespace"] = self._namespace
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_matches(self, raw_response: dict) -> list[SearchMatch]:
        matches = raw_response.get("matches")
        if matches is None:
            raise ValueError(f"Pinecone query response has no 'matches'. Response keys: {list(raw_response.keys())}")
        return [
            SearchMatch(
                id=str(match.get("id")),
                score=float(match.get("score", 0.0)),
                metadata=match.get("metadata") or {},
            )
            for match in matches
        ]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_describe_index(self) -> dict:
        # describe lives on the control plane, not on the index host
        response = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_describe_index(),
            base_url=self._control_url,
            raise_on_error=True,
        )
        return response.json()
