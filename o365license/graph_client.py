from typing import Any, Dict, Optional, Union

import requests

from .errors import DirectoryError, GraphAPIError

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_TIMEOUT = 30.0


class GraphClient:
    """
    Примитивный клиент для Microsoft Graph.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = GRAPH_BASE_URL,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _make_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        path = path.lstrip("/")
        return f"{self.base_url}/{path}"

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Union[Dict[str, Any], str]:
        url = self._make_url(path)
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }
        if json is not None:
            headers["Content-Type"] = "application/json"

        try:
            resp = requests.request(
                method=method.upper(),
                url=url,
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DirectoryError(f"Graph API request failed: {e}") from e

        # PATCH /users и POST assignLicense могут вернуть 204 без тела
        if resp.status_code == 204 or not resp.content:
            data: Union[Dict[str, Any], str] = {}
        else:
            try:
                data = resp.json()
            except ValueError:
                data = resp.text

        if not resp.ok:
            raise GraphAPIError(
                f"Graph API error {resp.status_code}: {data}",
                status_code=resp.status_code,
                payload=data,
            )

        return data

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("POST", path, json=json)

    def patch(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("PATCH", path, json=json)
