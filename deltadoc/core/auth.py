import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from deltadoc.core.security import verify_token

security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> uuid.UUID:
    """Зависимость для получения идентификатора текущего пользователя.

    Аутентификация выполняется внешним провайдером, здесь только проверяется
    подпись токена и извлекается поле ``sub``.
    """
    payload = verify_token(credentials.credentials)
    user_id = payload.get("sub") if payload else None

    try:
        return uuid.UUID(str(user_id))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
