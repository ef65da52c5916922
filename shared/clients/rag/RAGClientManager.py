from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager:
    """
    Manager class to instantiate the vector index (RAG) client selected by configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the RAG engine from ENV configuration.

        Returns:
            str: Capitalised engine name (e.g. "Pinecone").

        Raises:
            ValueError: If no RAG engine is specified in the configuration.
        """
        engine = self.helper_config.get_string_val("RAG_ENGINE")
        if not engine:
            raise ValueError("No RAG engine specified in configuration (RAG_ENGINE).")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> RAGClientInterface:
        """
        Initializes the RAG client for the engine specified in the configuration.

        Returns:
            RAGClientInterface: An instance of the RAG client.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"RAGClient{engine}"
        try:
            module = __import__(
                f"shared.clients.rag.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported RAG engine specified: '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated RAG client for engine: %s", engine)
        return client

    def get_client(self) -> RAGClientInterface:
        """
        Returns the instantiated RAG client.
        """
        return self.client
