import hmac

from app.core.config import settings


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def is_service_request(authorization: str | None, api_key: str | None = None) -> bool:
    """Пускаем только service-role: ключ в Bearer или в заголовке apikey."""
    token = extract_bearer_token(authorization) or (api_key or "").strip() or None
    if not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), settings.service_role_key.encode("utf-8"))
