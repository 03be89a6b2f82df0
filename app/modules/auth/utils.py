from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from app.core.config import settings

SECRET_KEY = settings.APP_SECRET_STRING
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES


def _create_token(data: dict, token_type: str, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": token_type})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Token de acceso del usuario (sub, user_role). La empresa llega en el
    header X-Company-ID.
    """
    return _create_token(data, "access", expires_delta)


def create_context_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Token de contexto con la empresa seleccionada (sub, tenant_id, user_role).
    """
    return _create_token(data, "context", expires_delta)


def decode_token(token: str) -> dict:
    """Validar firma y expiración. Lanza jwt.PyJWTError si el token no es válido."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
