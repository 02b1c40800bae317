import time
from typing import Callable, Iterable, Iterator, Optional, Tuple

from .directory import DirectoryClient
from .errors import CatalogUnavailableError, DirectoryError
from .log import get_logger

logger = get_logger(__name__)

DEFAULT_INITIAL_DELAY = 2.0
DEFAULT_MAX_DELAY = 60.0


class LicenseCatalog:
    """
    Неизменяемый набор допустимых идентификаторов лицензий тенанта
    (вида contoso:ENTERPRISEPACK). Заполняется один раз при старте.
    """

    def __init__(self, identifiers: Iterable[str]) -> None:
        self._items: Tuple[str, ...] = tuple(dict.fromkeys(identifiers))
        self._by_lower = {item.lower(): item for item in self._items}

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, license_id: object) -> bool:
        return isinstance(license_id, str) and self.resolve(license_id) is not None

    def __repr__(self) -> str:
        return f"LicenseCatalog({list(self._items)!r})"

    def resolve(self, license_id: str) -> Optional[str]:
        return self._by_lower.get(license_id.lower())


def bootstrap_catalog(
    connect: Callable[[], DirectoryClient],
    max_attempts: int = 0,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[LicenseCatalog, DirectoryClient]:
    """
    Получить список SKU тенанта. Пустой ответ или ошибка: предупреждение,
    пауза, переподключение, новая попытка. Пауза растёт вдвое до max_delay.

    max_attempts <= 0: пробуем бесконечно (пока оператор не прервёт).
    Возвращает каталог и клиент, с которым удалась попытка.
    """
    delay = initial_delay
    attempt = 0

    while True:
        attempt += 1
        try:
            directory = connect()
            identifiers = directory.list_tenant_licenses()
        except DirectoryError as e:
            logger.warning("catalog_fetch_failed", attempt=attempt, error=str(e))
        else:
            if identifiers:
                catalog = LicenseCatalog(identifiers)
                logger.info("catalog_loaded", attempt=attempt, size=len(catalog))
                return catalog, directory
            logger.warning("catalog_empty", attempt=attempt)

        if max_attempts > 0 and attempt >= max_attempts:
            raise CatalogUnavailableError(
                f"Не удалось получить список лицензий тенанта за {attempt} попыток"
            )

        logger.warning("catalog_retry", delay=delay)
        sleep(delay)
        delay = min(delay * 2, max_delay)
