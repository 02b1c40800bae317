from typing import Any, Dict, List, Optional, Protocol

from .errors import DirectoryError, GraphAPIError, UserNotFoundError
from .graph_client import GraphClient
from .models import UserRecord


class DirectoryClient(Protocol):
    """
    Всё, что операции с лицензиями требуют от каталога.
    """

    def lookup_user(self, upn: str) -> UserRecord:
        ...

    def list_tenant_licenses(self) -> List[str]:
        ...

    def set_usage_location(self, upn: str, location: str) -> None:
        ...

    def add_license(self, upn: str, license_id: str) -> None:
        ...

    def remove_license(self, upn: str, license_id: str) -> None:
        ...


USER_SELECT = "id,userPrincipalName,usageLocation,assignedLicenses"


class GraphDirectory:
    """
    DirectoryClient поверх Microsoft Graph.

    Идентификатор лицензии строится как <префикс тенанта>:<skuPartNumber>,
    префикс берётся из initial-домена (contoso.onmicrosoft.com -> contoso).
    Graph оперирует GUID'ами skuId, поэтому держим соответствие в обе стороны.
    """

    def __init__(self, client: GraphClient) -> None:
        self.client = client
        self._tenant_prefix: Optional[str] = None
        self._sku_ids: Dict[str, str] = {}
        self._sku_names: Dict[str, str] = {}
        self.skus: List[Dict[str, Any]] = []

    def tenant_prefix(self) -> str:
        """
        GET /organization, verifiedDomains[isInitial].
        Требуется Organization.Read.All (Application).
        """
        if self._tenant_prefix is None:
            result = self.client.get("/organization", params={"$select": "verifiedDomains"})
            orgs = result.get("value", [])
            if not orgs:
                raise DirectoryError("Graph не вернул организацию тенанта")

            domains = orgs[0].get("verifiedDomains") or []
            initial = next((d for d in domains if d.get("isInitial")), None)
            if initial is None:
                raise DirectoryError("У тенанта нет initial-домена (*.onmicrosoft.com)")

            self._tenant_prefix = initial["name"].split(".")[0]
        return self._tenant_prefix

    def list_tenant_licenses(self) -> List[str]:
        """
        GET /subscribedSkus -> ["contoso:ENTERPRISEPACK", ...]
        """
        prefix = self.tenant_prefix()
        result = self.client.get("/subscribedSkus")
        self.skus = result.get("value", [])

        identifiers = []
        self._sku_ids.clear()
        self._sku_names.clear()
        for sku in self.skus:
            sku_id = sku.get("skuId")
            part = sku.get("skuPartNumber")
            if not sku_id or not part:
                continue
            identifier = f"{prefix}:{part}"
            self._sku_ids[identifier] = sku_id
            self._sku_names[sku_id] = identifier
            identifiers.append(identifier)
        return identifiers

    def _sku_id(self, license_id: str) -> str:
        if not self._sku_ids:
            self.list_tenant_licenses()
        try:
            return self._sku_ids[license_id]
        except KeyError:
            raise DirectoryError(f"SKU {license_id} отсутствует в тенанте") from None

    def lookup_user(self, upn: str) -> UserRecord:
        """
        GET /users/{upn}?$select=id,userPrincipalName,usageLocation,assignedLicenses
        """
        try:
            data = self.client.get(f"/users/{upn}", params={"$select": USER_SELECT})
        except GraphAPIError as e:
            if e.status_code == 404:
                raise UserNotFoundError(
                    f"Пользователь {upn} не найден", status_code=404, payload=e.payload
                ) from e
            raise

        if not self._sku_names:
            self.list_tenant_licenses()

        assigned = data.get("assignedLicenses") or []
        licenses = []
        for lic in assigned:
            sku_id = lic.get("skuId", "")
            # SKU, которых нет в subscribedSkus, показываем как есть (GUID)
            licenses.append(self._sku_names.get(sku_id, sku_id))

        return UserRecord(
            upn=data.get("userPrincipalName") or upn,
            licensed=bool(licenses),
            licenses=licenses,
            usage_location=data.get("usageLocation"),
            id=data.get("id"),
        )

    def set_usage_location(self, upn: str, location: str) -> None:
        """
        PATCH /users/{upn} {"usageLocation": "US"}
        Без usageLocation Graph не даст выдать лицензию.
        """
        self.client.patch(f"/users/{upn}", json={"usageLocation": location})

    def add_license(self, upn: str, license_id: str) -> None:
        """
        POST /users/{upn}/assignLicense
        """
        body = {
            "addLicenses": [{"skuId": self._sku_id(license_id), "disabledPlans": []}],
            "removeLicenses": [],
        }
        self.client.post(f"/users/{upn}/assignLicense", json=body)

    def remove_license(self, upn: str, license_id: str) -> None:
        body = {
            "addLicenses": [],
            "removeLicenses": [self._sku_id(license_id)],
        }
        self.client.post(f"/users/{upn}/assignLicense", json=body)
