"""
Text generation capability used by the quiz generator and answer evaluator.

The core only depends on ``TextGenerator.generate(system_prompt, user_prompt)``;
``ChatOpenAITextGenerator`` is the production implementation on top of
langchain's ChatOpenAI.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from loguru import logger

from ..config import config, token_tracker


class TextGenerator(Protocol):
    """Request/response text capability. Output is untrusted free text."""

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        ...


class ChatOpenAITextGenerator:
    """
    TextGenerator backed by an OpenAI chat model.

    Token usage reported by the model is added to the global token tracker.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        llm: Any = None,
    ):
        """
        Initialize the generator.

        Args:
            model_name: Chat model name (defaults to config.model.model_name)
            temperature: Sampling temperature (defaults to the generation temperature)
            max_tokens: Completion token cap (defaults to config.model.max_tokens)
            llm: Prebuilt chat model exposing ``invoke`` (skips ChatOpenAI construction)
        """
        self.model_name = model_name or config.model.model_name
        self.temperature = (
            temperature if temperature is not None else config.model.generation_temperature
        )
        self.max_tokens = max_tokens or config.model.max_tokens

        if llm is None:
            kwargs = {}
            if config.model.base_url:
                kwargs["base_url"] = config.model.base_url
            llm = ChatOpenAI(
                model=self.model_name,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                api_key=config.model.api_key,
                timeout=config.model.request_timeout,
                **kwargs,
            )
        self.llm = llm

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        """
        Send one system + user exchange and return the raw reply text.

        Raises:
            Whatever the underlying client raises; callers map it onto their
            own error type.
        """
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        response = self.llm.invoke(messages)
        self._track_usage(response)
        content = response.content
        if not isinstance(content, str):
            content = str(content)
        logger.debug(f"{self.model_name} replied with {len(content)} characters")
        return content

    def _track_usage(self, response: Any) -> None:
        if not config.logging.log_tokens:
            return
        usage = getattr(response, "usage_metadata", None)
        if not usage:
            return
        token_tracker.add_tokens(
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
        )
