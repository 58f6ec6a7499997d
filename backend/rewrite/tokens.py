"""
Token estimation for chunk budgeting.

The default estimator is a character heuristic (~4 characters per token).
It is an approximation of what a provider will bill, so every budget that
uses it is set well below the provider's real context limit.
"""

import math
from typing import Callable, Literal

import tiktoken

from backend.config import get_settings

CHARS_PER_TOKEN = 4

TokenEstimator = Callable[[str], int]

# Use cl100k_base encoding (GPT-4 family)
_encoder: tiktoken.Encoding | None = None


def estimate_tokens(text: str) -> int:
    """Estimate tokens in text from its character length."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def get_encoder() -> tiktoken.Encoding:
    """Get or initialize the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def count_tokens(text: str) -> int:
    """Count tokens in text with the cl100k_base encoding."""
    return len(get_encoder().encode(text))


def get_estimator(name: Literal["chars", "tiktoken"] | None = None) -> TokenEstimator:
    """
    Resolve a token estimator by name.

    Args:
        name: "chars" for the character heuristic, "tiktoken" for an
            encoder-based count. Defaults to the TOKEN_ESTIMATOR setting.

    Returns:
        Callable mapping text to a token count
    """
    if name is None:
        name = get_settings().token_estimator

    if name == "chars":
        return estimate_tokens
    if name == "tiktoken":
        return count_tokens

    raise ValueError(f"Unknown token estimator: {name}")
