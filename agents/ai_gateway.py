"""Gateway to the hosted completion API."""
import logging

import anthropic
from pydantic import ValidationError

from config.env import ANTHROPIC_MODEL, ANTHROPIC_MAX_TOKENS
from models.domain import AIRequest, AIResponse

logger = logging.getLogger(__name__)


class AIGatewayError(Exception):
    """The upstream call failed or returned something unusable."""


class AIGateway:
    """Stateless wrapper around the Anthropic Messages API.

    Safe to share between threads: every call builds its own request and the
    underlying SDK client holds no per-call state.
    """

    def __init__(self, client=None, model: str = None, max_tokens: int = None):
        self._client = client
        self.model = model or ANTHROPIC_MODEL
        self.max_tokens = max_tokens or ANTHROPIC_MAX_TOKENS

    @property
    def client(self):
        if self._client is None:
            from config.llm import get_client

            self._client = get_client()
        return self._client

    def build_request(self, input_text: str) -> AIRequest:
        return AIRequest.single_turn(input_text, model=self.model, max_tokens=self.max_tokens)

    def complete(self, input_text: str) -> str:
        """
        Send one user message and return the aggregated reply text.

        Args:
            input_text: User text, forwarded as-is (empty text included)

        Returns:
            Concatenation of every 'text' content block, in order

        Raises:
            AIGatewayError: on network errors, non-2xx responses or a
                response without usable content blocks. Not retried.
        """
        request = self.build_request(input_text)
        try:
            raw = self.client.messages.create(**request.dict())
        except anthropic.APIError as e:
            logger.error("Anthropic error: %s", e)
            raise AIGatewayError("AI service error") from e

        try:
            response = AIResponse(content=getattr(raw, "content", None))
        except (ValidationError, TypeError) as e:
            logger.error("Malformed Anthropic response: %s", e)
            raise AIGatewayError("malformed AI response") from e

        return response.text()
