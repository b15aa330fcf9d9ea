from typing import Optional

from citecast.config import settings
from citecast.utils.llm_client import LLMClient
from citecast.core.logging import get_logger

logger = get_logger(__name__)


class BaseAgent:
    def __init__(self, llm: Optional[LLMClient] = None, model_name: Optional[str] = None):
        self.agent_name = self.__class__.__name__
        self.log = logger.bind(agent=self.agent_name)

        if llm is None:
            if not settings.openai_api_key:
                self.log.error("api_key_missing", env_var="OPENAI_API_KEY")
                raise ValueError("OPENAI_API_KEY is missing.")
            llm = LLMClient(model_name=model_name, api_key=settings.openai_api_key)

        self.llm = llm
        self.log.info("agent_initialized", model=self.llm.model_name)

    async def run(self, *args, **kwargs):
        """
        Every agent must implement this method.
        It is the single entry point used by the pipeline stages.
        """
        raise NotImplementedError("Subclasses must implement the `run` method.")
