import datetime
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from attendance_api.config import settings
from attendance_api.exceptions import Unauthenticated

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(faculty_id: int, expires_in: Optional[datetime.timedelta] = None) -> str:
    """Issues an HS256 token whose subject is the faculty id."""
    now = datetime.datetime.now(datetime.timezone.utc)
    claims = {"sub": str(faculty_id), "iat": now}
    if expires_in is not None:
        claims["exp"] = now + expires_in
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_faculty_id(token: str) -> int:
    try:
        claims = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Authentication token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated("Invalid authentication token supplied.") from exc

    subject = claims.get("sub")
    try:
        faculty_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise Unauthenticated("Authentication token has no valid subject.") from exc
    if faculty_id <= 0:
        raise Unauthenticated("Authentication token has no valid subject.")
    return faculty_id


async def get_current_faculty_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Unauthorized")
    return decode_faculty_id(credentials.credentials)
