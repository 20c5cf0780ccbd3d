import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from cutroom.core.config import settings

http_bearer = HTTPBearer(auto_error=False)

class Principal(BaseModel):
    user_id: uuid.UUID
    email: str | None = None

    def email_matches(self, other: str | None) -> bool:
        if not self.email or not other:
            return False
        return self.email.strip().lower() == other.strip().lower()

def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
        return payload
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")

def _principal_from(data: dict) -> Principal:
    raw = data.get("sub") or data.get("user_id")
    try:
        user_id = uuid.UUID(str(raw))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    return Principal(user_id=user_id, email=data.get("email"))

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local dev, allow missing token and act as the configured dev user
    if creds is None and settings.ENV == "local":
        return Principal(user_id=uuid.UUID(settings.DEV_USER_ID), email=settings.DEV_USER_EMAIL)
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing token")
    return _principal_from(_decode_token(creds.credentials))
