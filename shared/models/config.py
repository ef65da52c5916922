from pydantic import BaseModel

from shared.helper.HelperConfig import HelperConfig


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter a client reads from the environment.

    Attributes:
        env_key (str): The key suffix of the environment variable, e.g. "API_KEY" for "EMBED_OPENAI_API_KEY".
        val_type (str): The expected value type. Supported types are "string", "number", "bool" and "list".
        default (str | int | bool | list | None): Fallback if the variable is not set. None marks the key as required.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None


class PipelineConfig(BaseModel):
    """
    Recognized options shaping chunking, ingestion requests and search requests.

    One instance is built at startup and shared read-only by the ingestion and
    query services. It replaces per-deployment handler variants: which request
    fields are required is decided here, not in separate routes.

    Attributes:
        chunk_size (int): Maximum characters per chunk.
        chunk_overlap (int): Characters shared by consecutive chunks.
        chunk_lookback (int): How far before the hard cutoff to look for a natural boundary.
        ingest_concurrency (int): Max parallel embed+upsert operations per document.
        describe_index (bool): Probe the index before ingesting (log-and-continue on failure).
        tenant_isolation (bool): Require teamId/organizationId on every request and filter on them.
        require_title (bool): Whether title is a required ingestion field.
        search_top_k (int): Default number of neighbours per query.
        search_max_top_k (int): Upper bound accepted for topK.
        search_excerpt_chars (int): Length of the text excerpt returned per source.
    """

    chunk_size: int = 1000
    chunk_overlap: int = 150
    chunk_lookback: int = 200
    ingest_concurrency: int = 5
    describe_index: bool = True
    tenant_isolation: bool = True
    require_title: bool = True
    search_top_k: int = 5
    search_max_top_k: int = 50
    search_excerpt_chars: int = 500

    @classmethod
    def from_helper_config(cls, helper_config: HelperConfig) -> "PipelineConfig":
        """Reads all PIPELINE_* variables, falling back to the field defaults."""
        defaults = cls()
        return cls(
            chunk_size=helper_config.get_number_val("PIPELINE_CHUNK_SIZE", default=defaults.chunk_size),
            chunk_overlap=helper_config.get_number_val("PIPELINE_CHUNK_OVERLAP", default=defaults.chunk_overlap),
            chunk_lookback=helper_config.get_number_val("PIPELINE_CHUNK_LOOKBACK", default=defaults.chunk_lookback),
            ingest_concurrency=helper_config.get_number_val("PIPELINE_INGEST_CONCURRENCY", default=defaults.ingest_concurrency),
            describe_index=helper_config.get_bool_val("PIPELINE_DESCRIBE_INDEX", default=defaults.describe_index),
            tenant_isolation=helper_config.get_bool_val("PIPELINE_TENANT_ISOLATION", default=defaults.tenant_isolation),
            require_title=helper_config.get_bool_val("PIPELINE_REQUIRE_TITLE", default=defaults.require_title),
            search_top_k=helper_config.get_number_val("PIPELINE_SEARCH_TOP_K", default=defaults.search_top_k),
            search_max_top_k=helper_config.get_number_val("PIPELINE_SEARCH_MAX_TOP_K", default=defaults.search_max_top_k),
            search_excerpt_chars=helper_config.get_number_val("PIPELINE_SEARCH_EXCERPT_CHARS", default=defaults.search_excerpt_chars),
        )
