from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

UNLICENSED = "Unlicensed"
ACCOUNT_NOT_FOUND = "O365 Account Not Found"
DEFAULT_USAGE_LOCATION = "US"


@dataclass
class UserRecord:
    """
    Снимок пользователя из каталога. Нигде не кэшируется, каждая операция
    запрашивает его заново.
    """

    upn: str
    licensed: bool
    licenses: List[str] = field(default_factory=list)
    usage_location: Optional[str] = None
    id: Optional[str] = None


class Outcome(str, Enum):
    ASSIGNED = "assigned"
    ALREADY_ASSIGNED = "already_assigned"
    REMOVED = "removed"
    NOT_ASSIGNED = "not_assigned"
    UNLICENSED = "unlicensed"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class OperationResult:
    upn: str
    license: str
    outcome: Outcome
    message: str
    # Нефатальные ошибки (например, не удалось выставить usageLocation)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome not in (Outcome.FAILED, Outcome.NOT_FOUND)

    @property
    def changed(self) -> bool:
        return self.outcome in (Outcome.ASSIGNED, Outcome.REMOVED)
