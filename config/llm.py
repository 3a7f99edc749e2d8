"""LLM (Language Model) configuration."""
from anthropic import Anthropic
from .env import ANTHROPIC_API_KEY


def get_client(api_key: str = None) -> Anthropic:
    """Create and return an Anthropic client with SDK retries disabled."""
    return Anthropic(
        api_key=api_key or ANTHROPIC_API_KEY,
        max_retries=0,
    )
