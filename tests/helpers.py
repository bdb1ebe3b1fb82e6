"""Shared test doubles for controller tests."""

from typing import Any

from stockbox.models.progress import ImportRowData
from stockbox.services.import_service.processor import ImportOptions


def fast_options(**overrides: Any) -> ImportOptions:
    """ImportOptions with every delay at zero."""
    values: dict[str, Any] = {
        "delay_between_items": 0,
        "delay_between_batches": 0,
        "rate_limit_delay": 0,
        "pause_poll_interval": 0.001,
    }
    values.update(overrides)
    return ImportOptions(**values)


def make_rows(count: int, start_index: int = 0) -> list[ImportRowData]:
    return [
        ImportRowData(row_index=start_index + i, data={"name": f"Item {i + 1}", "price": i + 1})
        for i in range(count)
    ]


class FakeApiClient:
    """Scripted ApiClient.

    Each scripted outcome is consumed by one create() call: an exception is
    raised, a dict is returned, None means the default success response.
    """

    def __init__(self, script: list[Any] | None = None, on_call: Any = None):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._script = list(script or [])
        self.on_call = on_call

    async def create(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((endpoint, payload))
        if self.on_call:
            self.on_call(len(self.calls))
        if self._script:
            outcome = self._script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            if outcome is not None:
                return outcome
        return {"id": f"id-{len(self.calls)}"}

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [payload for _, payload in self.calls]
