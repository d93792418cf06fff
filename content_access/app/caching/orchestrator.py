"""
Cross-store orchestration: coordinated sync, bulk invalidation, error
clearing, aggregated loading/error state and a parallel health probe.

The orchestrator only calls each store's public actions; it never touches a
store's records or indices directly.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from shared.errors import format_api_error
from shared.logging import get_logger

from ..domain.models import ListParams
from .stores import StoreSet


@dataclass
class HealthReport:
    """Per-store probe outcome; ``overall`` is True only when all passed."""

    stores: Dict[str, bool] = field(default_factory=dict)

    @property
    def overall(self) -> bool:
        return all(self.stores.values())

    @property
    def failing(self) -> List[str]:
        return [name for name, healthy in self.stores.items() if not healthy]

    def to_dict(self) -> Dict[str, Any]:
        return {**self.stores, "overall": self.overall}


class ContentOrchestrator:
    """Global operations over one ``StoreSet``."""

    def __init__(self, stores: StoreSet, *, clock: Callable[[], float] = time.time):
        self.stores = stores
        self._clock = clock
        self.logger = get_logger("content_access.orchestrator")

        self.is_global_loading = False
        self.global_error: Optional[str] = None
        self.last_global_sync: Optional[float] = None

    async def sync_all(self) -> Dict[str, Any]:
        """
        Fetch the first page of every entity store and the current-year
        activity grid concurrently.

        Per-store failures stay in that store's ``error``; the returned
        summary lists which stores synced. ``global_error`` is only set when
        the join itself fails.
        """
        entity_stores = self.stores.entity_stores()
        names = list(entity_stores) + ["activity"]
        tasks = [store.fetch_list(ListParams(page=1)) for store in entity_stores.values()]
        tasks.append(self.stores.repositories.fetch_current_year_activity())

        self.is_global_loading = True
        self.global_error = None
        summary: Dict[str, Any] = {"synced": [], "failed": [], "errors": []}

        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except Exception as exc:
            self.global_error = format_api_error(exc)
            self.logger.error("Global sync failed", error=self.global_error)
            summary["errors"].append(self.global_error)
            return summary
        finally:
            self.is_global_loading = False

        for name, outcome in zip(names, results):
            if isinstance(outcome, BaseException):
                self.logger.error("Store sync task failed", store=name, error=str(outcome))
                summary["failed"].append(name)
                summary["errors"].append(format_api_error(outcome))
                continue
            summary["synced" if outcome else "failed"].append(name)

        self.last_global_sync = self._clock()
        self.logger.info(
            "Global sync completed",
            synced=len(summary["synced"]),
            failed=summary["failed"],
        )
        return summary

    def invalidate_all(self) -> None:
        for store in self.stores.entity_stores().values():
            store.invalidate_cache()
        self.stores.repositories.invalidate_activity_cache()
        self.last_global_sync = None
        self.logger.info("All caches invalidated")

    def clear_all_errors(self) -> None:
        for store in self.stores.entity_stores().values():
            store.clear_errors()
        self.stores.contact.clear_errors()
        self.global_error = None

    def get_global_loading_state(self) -> bool:
        return (
            self.is_global_loading
            or any(store.is_any_loading for store in self.stores.entity_stores().values())
            or self.stores.contact.is_any_loading
        )

    def get_global_error_state(self) -> Optional[str]:
        """First error found, in store order: list, then key, then upload errors."""
        if self.global_error:
            return self.global_error

        for store in self.stores.entity_stores().values():
            if store.error:
                return store.error
            for state in store.key_states.values():
                if state.error:
                    return state.error
            for ticket in store.upload_tickets.values():
                if ticket.error:
                    return ticket.error

        if self.stores.repositories.activity_error:
            return self.stores.repositories.activity_error
        return self.stores.contact.error

    async def health_check(self) -> HealthReport:
        entity_stores = self.stores.entity_stores()
        results = await asyncio.gather(*(store.probe() for store in entity_stores.values()))

        report = HealthReport(stores=dict(zip(entity_stores, results)))
        report.stores["contact"] = True

        if report.overall:
            self.logger.info("Health check passed", stores=len(report.stores))
        else:
            self.logger.warning("Health check failed", failing=report.failing)
        return report

    def restore_all(self) -> Dict[str, bool]:
        """Restore every entity store from its persisted snapshot."""
        return {name: store.restore_snapshot() for name, store in self.stores.entity_stores().items()}

    def save_all(self) -> Dict[str, bool]:
        return {name: store.save_snapshot() for name, store in self.stores.entity_stores().items()}
