import logging
from functools import wraps

from flask import Flask, g, request, jsonify
from flask_cors import CORS
from flask_sock import Sock
import psycopg2
from pydantic import ValidationError
from werkzeug.security import generate_password_hash, check_password_hash

from agents.ai_gateway import AIGateway, AIGatewayError
from api.connection import ConnectionHandler
from api.registry import SessionRegistry
from config import env
from config.sql import (
    init_db,
    check_connection,
    create_user,
    get_user_by_username,
    get_user_by_token,
    create_auth_token,
    revoke_auth_token,
)
from utils.conversation_store import (
    ConversationStore,
    ConversationStoreError,
    CollectionNotFoundError,
)

from models.domain import AuthUser
from models.request import AskRequest, LoginRequest, RegisterRequest
from models.response import (
    AskResponse,
    AuthResponse,
    ConversationInfo,
    ConversationsListResponse,
    ErrorResponse,
    HealthResponse,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

WS_POLICY_VIOLATION = 1008


def _error(message: str, code: str, status: int):
    error_resp = ErrorResponse(error=message, code=code)
    return jsonify(error_resp.dict()), status


def _format_validation_error(err: ValidationError) -> str:
    details = err.errors() or []
    if not details:
        return "invalid data"
    first = details[0]
    loc = ".".join(str(item) for item in first.get("loc", []) if item != "__root__")
    msg = first.get("msg", "invalid data")
    return f"{loc}: {msg}" if loc else msg


def _get_auth_token() -> str:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip()
    # Browsers cannot set headers on a WebSocket upgrade.
    if request.path == "/ws":
        return request.args.get("token", "").strip()
    return ""


def user_from_token(token: str):
    try:
        row = get_user_by_token(token)
    except (psycopg2.Error, ValueError) as e:
        # Treat the caller as anonymous; protected routes answer 401.
        logger.error("Token lookup failed: %s", e)
        return None
    if not row:
        return None
    return AuthUser(id=row["id"], username=row["username"])


def require_user(view):
    """Pass the authenticated caller to the view as its first argument."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        user = g.get("user")
        if user is None:
            return _error("unauthorized", "UNAUTHORIZED", 401)
        if not isinstance(user, AuthUser):
            logger.error("Failed to assert user type from context: %s", type(user).__name__)
            return _error("failed to retrieve user information", "USER_ERROR", 500)
        return view(user, *args, **kwargs)

    return wrapper


def serve_websocket(ws, handler: ConnectionHandler, require_auth: bool) -> None:
    """Hand an upgraded socket to the handler, or close it when auth is required."""
    user = g.get("user")
    user_id = user.id if isinstance(user, AuthUser) else None
    if require_auth and user_id is None:
        logger.warning("Rejecting unauthenticated WebSocket from %s", request.remote_addr)
        ws.close(reason=WS_POLICY_VIOLATION, message="unauthorized")
        return
    handler.run(ws, user_id=user_id)


def create_app(
    gateway: AIGateway = None,
    store: ConversationStore = None,
    registry: SessionRegistry = None,
    user_resolver=None,
    ws_require_auth: bool = None,
) -> Flask:
    """
    Build the Flask application.

    Args:
        gateway: AI gateway client; defaults to one backed by the Anthropic SDK
        store: Conversation store; defaults to the configured collection
        registry: Session registry shared by every WebSocket handler
        user_resolver: Callable mapping a bearer token to an AuthUser or None
        ws_require_auth: Close unauthenticated sockets instead of serving them
    """
    if gateway is None:
        gateway = AIGateway()
    if store is None:
        store = ConversationStore()
    if registry is None:
        registry = SessionRegistry()
    if user_resolver is None:
        user_resolver = user_from_token
    if ws_require_auth is None:
        ws_require_auth = env.WS_REQUIRE_AUTH

    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": env.FRONTEND_ORIGIN}, r"/health/*": {"origins": env.FRONTEND_ORIGIN}})
    sock = Sock(app)
    handler = ConnectionHandler(registry, gateway, store)
    app.extensions["session_registry"] = registry

    @app.before_request
    def authenticate():
        g.user = None
        token = _get_auth_token()
        if token:
            g.user = user_resolver(token)

    @app.get("/health")
    def health():
        return jsonify(HealthResponse(sessions=registry.size()).dict())

    @app.get("/health/db")
    def health_db():
        try:
            info = check_connection()
        except Exception as e:
            return jsonify({"ok": False, "error": str(e)}), 500
        return jsonify({"ok": True, **info})

    @app.post("/admin/init-db")
    def admin_init_db():
        sent = request.headers.get("x-init-token", "")
        if env.INIT_DB_TOKEN and sent != env.INIT_DB_TOKEN:
            return jsonify({"ok": False, "error": "unauthorized"}), 401

        try:
            init_db(store.collection)
        except Exception as e:
            logger.error("DB init failed: %s", e)
            return jsonify({"ok": False, "error": str(e)}), 500
        return jsonify({"ok": True})

    @app.post("/api/auth/register")
    def register_user():
        try:
            data = request.get_json(silent=True) or {}
            req = RegisterRequest(
                username=data.get("username"),
                password=data.get("password"),
                password_confirm=data.get("password_confirm"),
            )
        except ValidationError as e:
            return _error(_format_validation_error(e), "VALIDATION_ERROR", 400)

        username = req.username

        if req.password != req.password_confirm:
            return _error("passwords do not match", "PASSWORD_MISMATCH", 400)

        if get_user_by_username(username):
            return _error("user already registered", "USER_EXISTS", 409)

        user_id = create_user(username, generate_password_hash(req.password))
        token = create_auth_token(user_id)
        return jsonify(AuthResponse(token=token, username=username).dict())

    @app.post("/api/auth/login")
    def login_user():
        try:
            data = request.get_json(silent=True) or {}
            req = LoginRequest(
                username=data.get("username"),
                password=data.get("password"),
            )
        except ValidationError as e:
            return _error(_format_validation_error(e), "VALIDATION_ERROR", 400)

        user = get_user_by_username(req.username)
        if not user or not check_password_hash(user.get("password_hash", ""), req.password):
            return _error("invalid credentials", "INVALID_CREDENTIALS", 401)

        token = create_auth_token(user["id"])
        return jsonify(AuthResponse(token=token, username=user["username"]).dict())

    @app.get("/api/auth/me")
    @require_user
    def auth_me(user: AuthUser):
        return jsonify(AuthResponse(token=_get_auth_token(), username=user.username).dict())

    @app.post("/api/auth/logout")
    def auth_logout():
        token = _get_auth_token()
        if token:
            revoke_auth_token(token)
        return jsonify(SuccessResponse(message="logged out").dict())

    @app.post("/api/ask/ai")
    @require_user
    def ask_ai(user: AuthUser):
        """One-shot turn: validate, call the model, persist, reply."""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _error("invalid request", "VALIDATION_ERROR", 400)
        try:
            req = AskRequest(input=data.get("input"))
        except ValidationError:
            return _error("invalid request", "VALIDATION_ERROR", 400)

        try:
            reply = gateway.complete(req.input)
        except AIGatewayError:
            return _error("AI service error", "AI_SERVICE_ERROR", 500)

        # Unlike the socket path, the reply has not been sent yet, so a failed
        # save is reported to the caller.
        try:
            store.save(user.id, req.input, reply)
        except CollectionNotFoundError as e:
            return _error(str(e), "COLLECTION_NOT_FOUND", 500)
        except ConversationStoreError:
            return _error("failed to save conversation", "SAVE_FAILED", 500)

        return jsonify(AskResponse(response=reply).dict())

    @app.get("/api/conversations")
    @require_user
    def list_conversations(user: AuthUser):
        try:
            limit = int(request.args.get("limit", 50))
        except ValueError:
            return _error("invalid request", "VALIDATION_ERROR", 400)
        limit = max(1, min(limit, 200))

        try:
            records = store.list_for_user(user.id, limit=limit)
        except ConversationStoreError as e:
            return _error(str(e), "STORE_ERROR", 500)

        conversations = [
            ConversationInfo(
                id=r.id,
                user_input=r.user_input,
                ai_response=r.ai_response,
                created_at=r.created_at.isoformat() if r.created_at else None,
            )
            for r in records
        ]
        return jsonify(ConversationsListResponse(conversations=conversations).dict())

    @sock.route("/ws")
    def ws_endpoint(ws):
        serve_websocket(ws, handler, ws_require_auth)

    return app
