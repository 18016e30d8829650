"""
LLM Provider Interface - Abstract base for completion providers.

This module defines the interface for LLM services (OpenAI, Azure, local
OpenAI-compatible servers, etc.).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class Completion:
    """Text returned by a provider plus what it cost."""
    text: str
    usage: Dict[str, int] = field(default_factory=dict)
    cost_usd: float = 0.0
    model: Optional[str] = None


class LLMProvider(ABC):
    """
    Abstract Interface for LLM Providers.
    """

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
        timeout: float,
        system_prompt: Optional[str] = None,
        json_mode: bool = True,
    ) -> Completion:
        """
        Run a single completion.

        Args:
            prompt: User message
            model: Model name
            max_tokens: Output token cap
            temperature: Sampling temperature
            timeout: Seconds before the request is aborted
            system_prompt: Optional system message
            json_mode: Ask the model for a JSON object

        Raises:
            ProviderError: on failure, timeout or an empty response
        """
        pass
