from shared.helper.HelperConfig import HelperConfig
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager:
    """Manager class to instantiate the configured LLM client.

    Answer generation is optional: without LLM_ENGINE no client is created
    and queries return retrieved sources only.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str | None:
        """Read the LLM engine name from env configuration.

        Returns:
            str | None: Capitalised engine name (e.g. "Openai"), or None if LLM_ENGINE is not set.
        """
        engine = self.helper_config.get_string_val("LLM_ENGINE", default="")
        if not engine:
            return None
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> LLMClientInterface | None:
        """Instantiate the LLM client for the configured engine.

        Returns:
            LLMClientInterface | None: The instantiated client, or None when generation is disabled.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        if engine is None:
            self.logging.info("No LLM engine configured (LLM_ENGINE). Answer generation is disabled.")
            return None
        class_name = f"LLMClient{engine}"
        try:
            module = __import__(
                f"shared.clients.llm.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError("Unsupported LLM engine '%s'. Error: %s" % (engine, e))
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated LLM client for engine: %s", engine)
        return client

    def get_client(self) -> LLMClientInterface | None:
        """Return the instantiated LLM client, if any."""
        return self.client
