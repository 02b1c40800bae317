import pytest
import requests

from o365license.directory import GraphDirectory
from o365license.errors import DirectoryError, GraphAPIError, UserNotFoundError
from o365license.graph_client import GraphClient

E3_GUID = "6fd2c87f-b296-42f0-b197-1e91e994b900"
E1_GUID = "18181a46-0d4e-45cd-891e-60aabd171b4e"


class FakeGraphClient:
    def __init__(self, users=None):
        self.users = users or {}
        self.requests = []

    def get(self, path, params=None):
        self.requests.append(("GET", path, params))
        if path == "/organization":
            return {
                "value": [
                    {
                        "verifiedDomains": [
                            {"name": "contoso.com", "isInitial": False},
                            {"name": "contoso.onmicrosoft.com", "isInitial": True},
                        ]
                    }
                ]
            }
        if path == "/subscribedSkus":
            return {
                "value": [
                    {"skuId": E3_GUID, "skuPartNumber": "ENTERPRISEPACK", "consumedUnits": 3},
                    {"skuId": E1_GUID, "skuPartNumber": "STANDARDPACK", "consumedUnits": 1},
                ]
            }
        if path.startswith("/users/"):
            upn = path[len("/users/"):]
            if upn not in self.users:
                raise GraphAPIError("Graph API error 404", status_code=404)
            return self.users[upn]
        raise AssertionError(path)

    def post(self, path, json=None):
        self.requests.append(("POST", path, json))
        return {}

    def patch(self, path, json=None):
        self.requests.append(("PATCH", path, json))
        return {}


@pytest.fixture
def graph():
    return FakeGraphClient(
        users={
            "a@contoso.com": {
                "id": "1",
                "userPrincipalName": "a@contoso.com",
                "usageLocation": "US",
                "assignedLicenses": [
                    {"skuId": E1_GUID, "disabledPlans": []},
                    {"skuId": "00000000-0000-0000-0000-000000000000", "disabledPlans": []},
                ],
            },
            "b@contoso.com": {"id": "2", "userPrincipalName": "b@contoso.com", "assignedLicenses": []},
        }
    )


def test_list_tenant_licenses(graph):
    directory = GraphDirectory(graph)
    assert directory.list_tenant_licenses() == ["contoso:ENTERPRISEPACK", "contoso:STANDARDPACK"]


def test_lookup_user_maps_sku_ids(graph):
    record = GraphDirectory(graph).lookup_user("a@contoso.com")

    assert record.licensed
    assert record.licenses == ["contoso:STANDARDPACK", "00000000-0000-0000-0000-000000000000"]
    assert record.usage_location == "US"
    assert record.id == "1"


def test_lookup_user_unlicensed(graph):
    record = GraphDirectory(graph).lookup_user("b@contoso.com")
    assert not record.licensed
    assert record.usage_location is None


def test_lookup_user_not_found(graph):
    with pytest.raises(UserNotFoundError):
        GraphDirectory(graph).lookup_user("ghost@contoso.com")


def test_add_and_remove_license_bodies(graph):
    directory = GraphDirectory(graph)
    directory.add_license("b@contoso.com", "contoso:ENTERPRISEPACK")
    directory.remove_license("a@contoso.com", "contoso:STANDARDPACK")

    posts = [r for r in graph.requests if r[0] == "POST"]
    assert posts == [
        (
            "POST",
            "/users/b@contoso.com/assignLicense",
            {"addLicenses": [{"skuId": E3_GUID, "disabledPlans": []}], "removeLicenses": []},
        ),
        (
            "POST",
            "/users/a@contoso.com/assignLicense",
            {"addLicenses": [], "removeLicenses": [E1_GUID]},
        ),
    ]


def test_add_unknown_license(graph):
    with pytest.raises(DirectoryError):
        GraphDirectory(graph).add_license("b@contoso.com", "contoso:NOPE")


def test_set_usage_location(graph):
    GraphDirectory(graph).set_usage_location("b@contoso.com", "DE")
    assert graph.requests == [("PATCH", "/users/b@contoso.com", {"usageLocation": "DE"})]


# --- GraphClient --- #


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else b"{}"
        self.text = ""

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


def test_graph_client_error_carries_status(monkeypatch):
    monkeypatch.setattr(
        requests, "request", lambda **kwargs: FakeResponse(404, {"error": {"code": "Request_ResourceNotFound"}})
    )
    with pytest.raises(GraphAPIError) as exc:
        GraphClient("token").get("/users/x@contoso.com")
    assert exc.value.status_code == 404


def test_graph_client_no_content(monkeypatch):
    captured = {}

    def fake_request(**kwargs):
        captured.update(kwargs)
        return FakeResponse(204)

    monkeypatch.setattr(requests, "request", fake_request)
    assert GraphClient("token", timeout=5).patch("/users/x", json={"usageLocation": "US"}) == {}
    assert captured["url"] == "https://graph.microsoft.com/v1.0/users/x"
    assert captured["timeout"] == 5
    assert captured["headers"]["Authorization"] == "Bearer token"


def test_graph_client_network_error(monkeypatch):
    def boom(**kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests, "request", boom)
    with pytest.raises(DirectoryError):
        GraphClient("token").get("/subscribedSkus")
