from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._organization = self.get_config_val("ORGANIZATION", default="", val_type="string")
        self._temperature = self.get_config_val("TEMPERATURE", default=0.2, val_type="number")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="ORGANIZATION", val_type="string", default=""),
            EnvConfig(env_key="TEMPERATURE", val_type="number", default=0.2),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if self._organization:
            headers["OpenAI-Organization"] = self._organization
        return headers

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict]) -> dict:
        """Build the OpenAI chat completion request body.

        Returns:
            dict: {"model": "...", "messages": [...], "temperature": ...}
        """
        return {"model": self.chat_model, "messages": messages, "temperature": self._temperature}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str:
        choices = response_data.get("choices") or []
        if not choices:
            raise ValueError(
                "OpenAI chat response does not contain any choices. "
                f"Response keys: {list(response_data.keys())}"
            )
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise ValueError("OpenAI chat response does not contain message content.")
        return content
