import msal
import requests
from typing import List, Optional

from .errors import AuthenticationError

GRAPH_AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}"
GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"


def get_confidential_client(
    tenant_id: str,
    client_id: str,
    client_secret: str,
) -> msal.ConfidentialClientApplication:
    """
    Создаёт MSAL ConfidentialClientApplication для client credentials flow.
    """
    authority = GRAPH_AUTHORITY_TEMPLATE.format(tenant_id=tenant_id)
    return msal.ConfidentialClientApplication(
        client_id=client_id,
        client_credential=client_secret,
        authority=authority,
    )


def acquire_token_client_credentials(
    tenant_id: str,
    client_id: str,
    client_secret: str,
    scopes: Optional[List[str]] = None,
) -> str:
    """
    Получает access token для приложения (app-only).
    Для управления лицензиями нужны User.ReadWrite.All и Organization.Read.All (Application).
    """
    if scopes is None:
        scopes = [GRAPH_DEFAULT_SCOPE]

    # msal ходит в login.microsoftonline.com через requests уже при создании клиента
    try:
        app = get_confidential_client(tenant_id, client_id, client_secret)

        # Попытка взять токен из кэша (на время жизни процесса)
        result = app.acquire_token_silent(scopes, account=None)

        if not result:
            result = app.acquire_token_for_client(scopes=scopes)
    except requests.RequestException as e:
        raise AuthenticationError(f"Нет связи с {GRAPH_AUTHORITY_TEMPLATE.format(tenant_id=tenant_id)}: {e}") from e

    if "access_token" not in result:
        raise AuthenticationError(
            f"Не удалось получить токен: {result.get('error')}: {result.get('error_description')}"
        )

    return result["access_token"]
