from typing import Optional

from .catalog import LicenseCatalog
from .directory import DirectoryClient
from .errors import DirectoryError, UserNotFoundError
from .log import get_logger
from .models import (
    ACCOUNT_NOT_FOUND,
    DEFAULT_USAGE_LOCATION,
    UNLICENSED,
    OperationResult,
    Outcome,
    UserRecord,
)
from .validation import validate_license, validate_upn

logger = get_logger(__name__)


def is_license_assigned(record: UserRecord, license_id: str) -> bool:
    """
    Назначена ли лицензия пользователю (по уже полученной записи).
    """
    assigned = set(record.licenses)
    return license_id in assigned


def get_license(directory: DirectoryClient, upn: str) -> str:
    """
    Лицензии пользователя одной строкой через ';' в порядке, в котором их вернул Graph.
    Для пользователя без лицензий: "Unlicensed", для отсутствующего: "O365 Account Not Found".
    """
    validate_upn(upn)

    try:
        record = directory.lookup_user(upn)
    except DirectoryError as e:
        logger.debug("user_lookup_failed", upn=upn, error=str(e))
        return ACCOUNT_NOT_FOUND

    if not record.licensed:
        return UNLICENSED
    return ";".join(record.licenses)


def _lookup_failed(upn: str, license_id: str, error: DirectoryError) -> OperationResult:
    if isinstance(error, UserNotFoundError):
        logger.warning("user_not_found", upn=upn, error=str(error))
        return OperationResult(
            upn, license_id, Outcome.NOT_FOUND, f"Пользователь {upn} не найден в Office 365.", [str(error)]
        )
    logger.error("user_lookup_failed", upn=upn, error=str(error))
    return OperationResult(
        upn, license_id, Outcome.FAILED, f"Не удалось получить пользователя {upn}.", [str(error)]
    )


def add_license(
    directory: DirectoryClient,
    catalog: LicenseCatalog,
    upn: str,
    license_id: str,
    location: Optional[str] = DEFAULT_USAGE_LOCATION,
) -> OperationResult:
    """
    Выдать лицензию, если её ещё нет.

    1) Уже назначена -> ничего не меняем.
    2) usageLocation отличается от нужной -> выставляем; ошибку записываем,
       но лицензию всё равно пытаемся выдать.
    3) POST assignLicense.
    """
    validate_upn(upn)
    license_id = validate_license(catalog, license_id)
    location = location or DEFAULT_USAGE_LOCATION

    try:
        record = directory.lookup_user(upn)
    except DirectoryError as e:
        return _lookup_failed(upn, license_id, e)

    if is_license_assigned(record, license_id):
        return OperationResult(
            upn,
            license_id,
            Outcome.ALREADY_ASSIGNED,
            f"{license_id} уже назначена {upn}, изменений нет.",
        )

    errors = []
    if record.usage_location != location:
        try:
            directory.set_usage_location(upn, location)
            logger.info("usage_location_set", upn=upn, location=location)
        except DirectoryError as e:
            logger.warning("usage_location_failed", upn=upn, location=location, error=str(e))
            errors.append(f"usageLocation={location}: {e}")

    try:
        directory.add_license(upn, license_id)
    except DirectoryError as e:
        logger.error("license_add_failed", upn=upn, license=license_id, error=str(e))
        errors.append(str(e))
        return OperationResult(
            upn, license_id, Outcome.FAILED, f"Не удалось назначить {license_id} для {upn}.", errors
        )

    logger.info("license_added", upn=upn, license=license_id)
    return OperationResult(upn, license_id, Outcome.ASSIGNED, f"{license_id} назначена {upn}.", errors)


def remove_license(
    directory: DirectoryClient,
    catalog: LicenseCatalog,
    upn: str,
    license_id: str,
) -> OperationResult:
    """
    Снять лицензию, если она назначена. Повторный вызов ничего не ломает.
    """
    validate_upn(upn)
    license_id = validate_license(catalog, license_id)

    try:
        record = directory.lookup_user(upn)
    except DirectoryError as e:
        return _lookup_failed(upn, license_id, e)

    if not record.licensed:
        return OperationResult(
            upn, license_id, Outcome.UNLICENSED, f"{upn} найден, но лицензий у него нет."
        )

    if not is_license_assigned(record, license_id):
        return OperationResult(
            upn,
            license_id,
            Outcome.NOT_ASSIGNED,
            f"{license_id} не назначена {upn}, изменений нет.",
        )

    try:
        directory.remove_license(upn, license_id)
    except DirectoryError as e:
        logger.error("license_remove_failed", upn=upn, license=license_id, error=str(e))
        return OperationResult(
            upn, license_id, Outcome.FAILED, f"Не удалось снять {license_id} у {upn}.", [str(e)]
        )

    logger.info("license_removed", upn=upn, license=license_id)
    return OperationResult(upn, license_id, Outcome.REMOVED, f"{license_id} снята у {upn}.")
