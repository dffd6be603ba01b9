from fastapi import Header


async def bearer_token(authorization: str | None = Header(default=None)) -> str | None:
    """
    Достаёт токен из Authorization: Bearer <token>. Проверка токена: дело сервиса.
    """
    if not authorization:
        return None
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None
