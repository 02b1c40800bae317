from typing import Dict, List, Optional, Set

import pytest

from o365license.catalog import LicenseCatalog
from o365license.errors import DirectoryError, UserNotFoundError
from o365license.models import UserRecord


class FakeDirectory:
    """
    In-memory каталог, который записывает все вызовы.
    """

    def __init__(self, skus: Optional[List[str]] = None) -> None:
        self.users: Dict[str, UserRecord] = {}
        self.tenant_skus = list(skus or [])
        self.calls: List[tuple] = []
        self.fail_on: Set[str] = set()

    def add_user(self, upn, licenses=(), usage_location="US") -> UserRecord:
        record = UserRecord(
            upn=upn,
            licensed=bool(licenses),
            licenses=list(licenses),
            usage_location=usage_location,
            id=f"id-{upn}",
        )
        self.users[upn] = record
        return record

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise DirectoryError(f"{op} failed", status_code=500)

    def lookup_user(self, upn: str) -> UserRecord:
        self.calls.append(("lookup_user", upn))
        self._maybe_fail("lookup_user")
        if upn not in self.users:
            raise UserNotFoundError(f"{upn} not found", status_code=404)
        stored = self.users[upn]
        # копия, чтобы операции не видели изменения задним числом
        return UserRecord(
            upn=stored.upn,
            licensed=stored.licensed,
            licenses=list(stored.licenses),
            usage_location=stored.usage_location,
            id=stored.id,
        )

    def list_tenant_licenses(self) -> List[str]:
        self.calls.append(("list_tenant_licenses",))
        self._maybe_fail("list_tenant_licenses")
        return list(self.tenant_skus)

    def set_usage_location(self, upn: str, location: str) -> None:
        self.calls.append(("set_usage_location", upn, location))
        self._maybe_fail("set_usage_location")
        self.users[upn].usage_location = location

    def add_license(self, upn: str, license_id: str) -> None:
        self.calls.append(("add_license", upn, license_id))
        self._maybe_fail("add_license")
        user = self.users[upn]
        user.licenses.append(license_id)
        user.licensed = True

    def remove_license(self, upn: str, license_id: str) -> None:
        self.calls.append(("remove_license", upn, license_id))
        self._maybe_fail("remove_license")
        user = self.users[upn]
        user.licenses.remove(license_id)
        user.licensed = bool(user.licenses)

    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ("set_usage_location", "add_license", "remove_license")]


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory(skus=["t:E1", "t:E3"])


@pytest.fixture
def catalog() -> LicenseCatalog:
    return LicenseCatalog(["t:E1", "t:E3"])
