import re

from .catalog import LicenseCatalog
from .errors import ValidationError

UPN_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+@(?:[A-Za-z0-9_\-]+\.)+[A-Za-z]{2,5}")


def validate_upn(upn: str) -> str:
    """
    Проверка формы UPN: local-part@domain.tld
    """
    if not isinstance(upn, str) or not UPN_PATTERN.fullmatch(upn):
        raise ValidationError(f"Некорректный UPN: {upn!r}")
    return upn


def validate_license(catalog: LicenseCatalog, license_id: str) -> str:
    """
    Лицензия должна быть в каталоге тенанта.
    Возвращает написание из каталога (сравнение без учёта регистра).
    """
    canonical = catalog.resolve(license_id)
    if canonical is None:
        raise ValidationError(
            f"Лицензия {license_id!r} не найдена в тенанте. Доступны: {', '.join(catalog)}"
        )
    return canonical
