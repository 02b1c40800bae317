from typing import Any, Optional


class ValidationError(ValueError):
    """
    Неверный UPN или лицензия, которой нет в каталоге тенанта.
    Бросается до любого обращения к Graph.
    """


class DirectoryError(RuntimeError):
    """
    Любая ошибка каталога: сеть, авторизация, throttling, ответ Graph не 2xx.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class GraphAPIError(DirectoryError):
    pass


class AuthenticationError(DirectoryError):
    pass


class UserNotFoundError(DirectoryError):
    pass


class CatalogUnavailableError(RuntimeError):
    """
    Не удалось получить непустой список SKU за отведённое число попыток.
    """
