from typing import List

from tasq.core.exceptions import AlertNotFoundError


class AlertStore:
    """Ordered list of in-app alert messages for one session.

    Scanners append, pushed events prepend, and the UI removes entries
    by position.  Nothing else mutates it.
    """

    def __init__(self) -> None:
        self._alerts: List[str] = []

    def append(self, message: str) -> None:
        self._alerts.append(message)

    def prepend(self, message: str) -> None:
        self._alerts.insert(0, message)

    def remove(self, index: int) -> str:
        """Remove and return the alert at *index*.

        Raises ``AlertNotFoundError`` for an index outside the list;
        negative indexes are rejected rather than counted from the end.
        """
        if index < 0 or index >= len(self._alerts):
            raise AlertNotFoundError(f"No alert at position {index}")
        return self._alerts.pop(index)

    def snapshot(self) -> List[str]:
        return list(self._alerts)

    def __len__(self) -> int:
        return len(self._alerts)
