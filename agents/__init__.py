"""Package exports for agents."""
from agents.ai_gateway import AIGateway, AIGatewayError

__all__ = [
	"AIGateway",
	"AIGatewayError",
]
