import logging
import re
from typing import Generator, Optional, Union
from urllib.parse import unquote

from fastapi import Depends, HTTPException, Request, WebSocket, status
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session
from starlette.datastructures import State

from app.core import security
from app.db.session import SessionLocal
from app.models.user.user_model import User

log = logging.getLogger(__name__)

ScopeType = Union[Request, WebSocket]


def _resolve_scope(
    request: Request = None,  # type: ignore[assignment]
    websocket: WebSocket = None,  # type: ignore[assignment]
) -> ScopeType | None:
    return request or websocket


def get_db(scope: ScopeType | None = Depends(_resolve_scope)) -> Generator[Session, None, None]:
    """One session per request, shared by every dependency that asks for it.

    ``get_current_user`` and the route handler both depend on ``get_db``; the
    session is cached on ``request.state`` with a reference counter so the
    user instance stays attached until the last dependency exits.
    """
    if scope is None:
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()
        return

    state = getattr(scope, "state", None)
    if state is None:
        state = State()
        setattr(scope, "state", state)

    db = getattr(state, "_db_session", None)
    if db is None:
        db = SessionLocal()
        state._db_session = db
        state._db_refcount = 0
    state._db_refcount = getattr(state, "_db_refcount", 0) + 1

    try:
        yield db
    finally:
        state._db_refcount -= 1
        if state._db_refcount <= 0:
            try:
                db.close()
            finally:
                del state._db_session
                del state._db_refcount


def _normalize_token_value(raw_token: str | None) -> str | None:
    """Strip quotes, percent-encoding and ``Bearer``/``Token`` prefixes."""
    if raw_token is None:
        return None

    token = unquote(raw_token.strip().strip('"').strip("'"))
    if not token:
        return None

    match = re.match(r"^(bearer|token)[\s,:]+(.+)$", token, flags=re.IGNORECASE)
    if match:
        token = match.group(2)
    return token.strip() or None


def _decode_user_from_token(token: str | None, db: Session) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )

    token = _normalize_token_value(token)
    if not token:
        log.warning("Validation échouée: Pas de token fourni.")
        raise credentials_exception

    try:
        payload = jwt.decode(token, security.SECRET_KEY, algorithms=[security.ALGORITHM])
        user_id = int(payload.get("sub"))
    except ExpiredSignatureError:
        log.warning("Validation échouée: Le token a expiré.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
    except (JWTError, ValueError, TypeError):
        log.warning("Validation échouée: Le token est invalide ou mal formé.")
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        log.warning("Validation échouée: Utilisateur avec ID %s non trouvé.", user_id)
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="inactive_user")
    return user


def _first_valid_user(candidates, db: Session) -> User:
    last_unauthorized_error: HTTPException | None = None
    for candidate in candidates:
        token = _normalize_token_value(candidate)
        if not token:
            continue
        try:
            return _decode_user_from_token(token, db)
        except HTTPException as exc:
            if exc.status_code != status.HTTP_401_UNAUTHORIZED:
                raise
            last_unauthorized_error = exc

    if last_unauthorized_error is not None:
        raise last_unauthorized_error
    return _decode_user_from_token(None, db)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    return _first_valid_user(
        (
            request.cookies.get("access_token"),
            request.headers.get("Authorization"),
            request.headers.get("X-Access-Token"),
            request.query_params.get("access_token"),
        ),
        db,
    )


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_superuser:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin_required")
    return current_user


def get_current_user_from_websocket(websocket: WebSocket, db: Session) -> User:
    candidates: list[Optional[str]] = [
        websocket.cookies.get("access_token"),
        websocket.headers.get("Authorization"),
        websocket.query_params.get("access_token"),
        websocket.query_params.get("token"),
    ]
    protocol_header = websocket.headers.get("sec-websocket-protocol")
    if protocol_header:
        candidates.extend(part.strip() for part in protocol_header.split(",") if part.strip())
    return _first_valid_user(candidates, db)
