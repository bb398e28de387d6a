"""
LLM Providers Module
====================
Abstraction layer for swappable vision-capable LLM backends.
Supports Ollama (local) and Groq Cloud (OpenAI-compatible).
"""

import base64
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from enum import Enum

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI

from ..config import settings

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers"""
    OLLAMA = "ollama"
    GROQ = "groq"


def build_vision_messages(
    system_prompt: str,
    user_prompt: str,
    image: Optional[bytes] = None,
    mime_type: str = "image/png"
) -> List[BaseMessage]:
    """
    Build a system + user message pair, optionally carrying an image.

    Args:
        system_prompt: Instructions for the model
        user_prompt: Request text
        image: Encoded image bytes to attach
        mime_type: MIME type of the image

    Returns:
        Messages ready for `ainvoke`
    """
    content: List[Dict[str, Any]] = [{"type": "text", "text": user_prompt}]
    if image is not None:
        encoded = base64.b64encode(image).decode("ascii")
        content.append({
            "type": "image_url",
            "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
        })
    return [SystemMessage(content=system_prompt), HumanMessage(content=content)]


def parse_json_response(message: Union[AIMessage, str]) -> Dict[str, Any]:
    """
    Parse a JSON-mode response, tolerating fenced code blocks.

    Raises:
        ValueError: If the content is not a JSON object
    """
    text = message.content if isinstance(message, BaseMessage) else message
    if isinstance(text, list):
        text = "".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in text)
    text = text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Model returned JSON that is not an object")
    return data


class BaseLLM(ABC):
    """
    Abstract base class for LLM providers.
    Provides a unified async interface for different LLM backends.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.1,
        **kwargs
    ):
        self.model = model
        self.temperature = temperature
        self._llm: Optional[BaseChatModel] = None
        self._json_llm: Optional[BaseChatModel] = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name"""
        pass

    @abstractmethod
    def _create_llm(self, json_mode: bool = False) -> BaseChatModel:
        """Create and return the underlying LangChain chat model"""
        pass

    def get_llm(self, json_mode: bool = False) -> BaseChatModel:
        """
        Get LLM instance with optional JSON mode (lazy initialization).

        Args:
            json_mode: If True, configure LLM to output JSON

        Returns:
            LangChain chat model instance
        """
        if json_mode:
            if self._json_llm is None:
                self._json_llm = self._create_llm(json_mode=True)
            return self._json_llm
        if self._llm is None:
            self._llm = self._create_llm()
        return self._llm

    async def ainvoke(self, messages: Union[str, list], json_mode: bool = False) -> AIMessage:
        """
        Invoke the LLM asynchronously.

        Args:
            messages: String prompt or list of messages
            json_mode: Request a JSON object response

        Returns:
            AI response message
        """
        return await self.get_llm(json_mode=json_mode).ainvoke(messages)

    async def ainvoke_json(self, messages: Union[str, list]) -> Dict[str, Any]:
        """Invoke in JSON mode and parse the result"""
        return parse_json_response(await self.ainvoke(messages, json_mode=True))

    def get_info(self) -> Dict[str, Any]:
        """Get provider information"""
        return {
            "provider": self.provider_name,
            "model": self.model,
            "temperature": self.temperature
        }


class OllamaLLM(BaseLLM):
    """
    Ollama LLM provider for local inference.
    """

    def __init__(
        self,
        model: str = "llama3.2-vision:latest",
        temperature: float = 0.1,
        base_url: str = "http://localhost:11434",
        num_ctx: int = 8192,
        **kwargs
    ):
        super().__init__(model=model, temperature=temperature, **kwargs)
        self.base_url = base_url
        self.num_ctx = num_ctx
        logger.info(f"OllamaLLM initialized: model={model}, base_url={base_url}")

    @property
    def provider_name(self) -> str:
        return LLMProvider.OLLAMA.value

    def _create_llm(self, json_mode: bool = False) -> BaseChatModel:
        """Create ChatOllama instance"""
        kwargs = {
            "model": self.model,
            "temperature": self.temperature,
            "base_url": self.base_url,
            "num_ctx": self.num_ctx,
        }

        if json_mode:
            kwargs["format"] = "json"

        return ChatOllama(**kwargs)


class GroqLLM(BaseLLM):
    """
    Groq Cloud LLM provider using OpenAI-compatible API.
    """

    def __init__(
        self,
        model: str = "meta-llama/llama-4-scout-17b-16e-instruct",
        temperature: float = 0.1,
        api_key: Optional[str] = None,
        base_url: str = "https://api.groq.com/openai/v1",
        max_tokens: int = 4096,
        fallback_to_ollama: bool = True,
        ollama_config: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        super().__init__(model=model, temperature=temperature, **kwargs)

        if not api_key:
            raise ValueError("GROQ_API_KEY is required for Groq provider")

        self.api_key = api_key
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.fallback_to_ollama = fallback_to_ollama
        self.ollama_config = ollama_config or {}

        logger.info(f"GroqLLM initialized: model={model}, base_url={base_url}")

    @property
    def provider_name(self) -> str:
        return LLMProvider.GROQ.value

    def _create_llm(self, json_mode: bool = False) -> BaseChatModel:
        """Create ChatOpenAI instance configured for Groq"""
        kwargs = {
            "model": self.model,
            "temperature": self.temperature,
            "api_key": self.api_key,
            "base_url": self.base_url,
            "max_tokens": self.max_tokens,
        }

        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}

        return ChatOpenAI(**kwargs)

    async def ainvoke(self, messages: Union[str, list], json_mode: bool = False) -> AIMessage:
        """
        Invoke Groq with automatic fallback to Ollama on errors.

        The raised error keeps the provider's status text so callers can
        classify it (rate limit, auth, network).
        """
        try:
            return await self.get_llm(json_mode=json_mode).ainvoke(messages)
        except Exception as e:
            error_str = str(e).lower()

            if "401" in error_str or "unauthorized" in error_str or "invalid api key" in error_str:
                logger.error(f"Groq authentication error: {e}")
                error_msg = "Groq API key is invalid or expired (401 unauthorized)"
            elif "429" in error_str or "rate limit" in error_str or "too many requests" in error_str:
                logger.warning(f"Groq rate limit exceeded: {e}")
                error_msg = "Groq rate limit exceeded (429)"
            else:
                logger.error(f"Groq API error: {e}")
                error_msg = f"Groq API error: {str(e)}"

            if self.fallback_to_ollama and self.ollama_config:
                logger.info("Attempting fallback to Ollama...")
                try:
                    return await OllamaLLM(**self.ollama_config).ainvoke(messages, json_mode=json_mode)
                except Exception as fallback_error:
                    logger.error(f"Ollama fallback also failed: {fallback_error}")
                    raise RuntimeError(
                        f"{error_msg}. Ollama fallback also failed: {str(fallback_error)}"
                    ) from e

            raise RuntimeError(error_msg) from e


class LLMFactory:
    """
    Factory class for creating LLM instances from application settings.
    """

    @classmethod
    def create(
        cls,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs
    ) -> BaseLLM:
        """
        Create an LLM instance based on provider.

        Args:
            provider: Provider name ("ollama" or "groq").
                     If None, uses settings.LLM_PROVIDER
            model: Model name. If None, uses provider-specific default
            **kwargs: Additional provider-specific arguments

        Returns:
            BaseLLM instance
        """
        provider = (provider or settings.LLM_PROVIDER).lower()

        logger.info(f"Creating LLM: provider={provider}, model={model}")

        if provider == LLMProvider.OLLAMA.value:
            return cls._create_ollama(model=model, **kwargs)
        elif provider == LLMProvider.GROQ.value:
            return cls._create_groq(model=model, **kwargs)
        else:
            raise ValueError(f"Unknown LLM provider: {provider}. Supported: ollama, groq")

    @classmethod
    def _ollama_config(cls, model: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        return {
            "model": model or settings.DEFAULT_MODEL,
            "temperature": kwargs.get("temperature", settings.TEMPERATURE),
            "base_url": kwargs.get("base_url", settings.OLLAMA_BASE_URL),
            "num_ctx": kwargs.get("num_ctx", settings.OLLAMA_NUM_CTX),
        }

    @classmethod
    def _create_ollama(cls, model: Optional[str] = None, **kwargs) -> OllamaLLM:
        """Create Ollama LLM instance"""
        return OllamaLLM(**cls._ollama_config(model, **kwargs))

    @classmethod
    def _create_groq(cls, model: Optional[str] = None, **kwargs) -> GroqLLM:
        """Create Groq LLM instance"""
        if not settings.GROQ_API_KEY:
            raise ValueError(
                "GROQ_API_KEY environment variable is required for Groq provider. "
                "Set it in your .env file."
            )

        return GroqLLM(
            model=model or settings.GROQ_MODEL,
            temperature=kwargs.get("temperature", settings.TEMPERATURE),
            api_key=settings.GROQ_API_KEY,
            base_url=kwargs.get("base_url", settings.GROQ_BASE_URL),
            max_tokens=kwargs.get("max_tokens", 4096),
            fallback_to_ollama=settings.GROQ_FALLBACK_TO_OLLAMA,
            ollama_config=cls._ollama_config(),
        )
