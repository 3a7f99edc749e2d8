"""Per-connection WebSocket loop."""
import logging
from typing import Optional

from simple_websocket import ConnectionClosed

from agents.ai_gateway import AIGateway, AIGatewayError
from api.registry import ConnectionState, Session, SessionRegistry
from utils.conversation_store import ConversationStore, ConversationStoreError

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Error processing request"


class ConnectionHandler:
    """Runs the read -> complete -> reply -> persist loop for one socket at a time.

    A single instance is shared by every connection; all per-connection state
    lives in the Session created by run().
    """

    def __init__(self, registry: SessionRegistry, gateway: AIGateway, store: ConversationStore):
        self.registry = registry
        self.gateway = gateway
        self.store = store

    def run(self, ws, user_id: Optional[str] = None) -> Session:
        """
        Own the socket until the peer goes away or a write fails.

        Args:
            ws: An upgraded socket exposing blocking receive()/send()/close()
            user_id: Authenticated owner, or None for an anonymous session

        Returns:
            The (closed) session, mostly useful to callers that log it
        """
        session = Session(socket=ws, user_id=user_id)
        self.registry.register(session)
        session.state = ConnectionState.OPEN
        logger.info("WebSocket session %s opened (user=%s)", session.handle, user_id or "anonymous")
        try:
            while True:
                try:
                    message = ws.receive()
                except ConnectionClosed as e:
                    logger.info("WebSocket read error on %s: %s", session.handle, e)
                    break
                if message is None:
                    continue
                if not self._handle_frame(session, message):
                    break
        finally:
            session.state = ConnectionState.CLOSING
            session.alive = False
            self.registry.unregister(session)
            self._release(ws)
            session.state = ConnectionState.CLOSED
            logger.info("WebSocket session %s closed", session.handle)
        return session

    def _handle_frame(self, session: Session, message) -> bool:
        """Process one frame; returns False when the connection must close."""
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")

        try:
            reply = self.gateway.complete(message)
        except AIGatewayError:
            return self._send(session, ERROR_MESSAGE)

        if not self._send(session, reply):
            return False

        # The reply is already on the wire; a failed save is only logged.
        try:
            self.store.save(session.user_id, message, reply)
        except ConversationStoreError as e:
            logger.error("Failed to save conversation for %s: %s", session.handle, e)
        return True

    def _send(self, session: Session, text: str) -> bool:
        try:
            session.socket.send(text)
        except ConnectionClosed as e:
            logger.warning("WebSocket write error on %s: %s", session.handle, e)
            return False
        return True

    @staticmethod
    def _release(ws) -> None:
        try:
            ws.close()
        except ConnectionClosed:
            # already closed by the peer
            pass
