import os
from typing import Optional
from langchain_openai import ChatOpenAI
from pydantic import SecretStr
from cse_reviewer.core.config import settings

class LLMFactory:
    """Factory for creating configured LLM instances with tracing."""

    @staticmethod
    def create_llm(
        model: Optional[str] = None,
        temperature: float = 0.7,
        json_mode: bool = True,
        tracing_project: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ChatOpenAI:
        """
        Create a configured ChatOpenAI instance.

        Args:
            model: The model name to use, defaults to settings.LLM_MODEL.
            temperature: The temperature for generation.
            json_mode: Whether to ask the model for a JSON object response.
            tracing_project: The LangSmith project name for tracing.
            api_key: OpenAI API key (optional, defaults to settings).
            timeout: Request timeout in seconds.
        """
        if settings.LANGSMITH_TRACING:
            os.environ["LANGCHAIN_TRACING_V2"] = "true"
            os.environ["LANGCHAIN_ENDPOINT"] = settings.LANGSMITH_ENDPOINT
            os.environ["LANGCHAIN_API_KEY"] = settings.LANGSMITH_API_KEY
            os.environ["LANGCHAIN_PROJECT"] = tracing_project or settings.LANGSMITH_PROJECT

        model_kwargs = {"response_format": {"type": "json_object"}} if json_mode else {}

        return ChatOpenAI(
            model=model or settings.LLM_MODEL,
            api_key=SecretStr(api_key or settings.OPENAI_API_KEY),
            temperature=temperature,
            timeout=timeout,
            model_kwargs=model_kwargs,
        )
