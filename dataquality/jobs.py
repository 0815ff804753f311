from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any

from dataquality.logging import get_logger, log_with_context
from dataquality.models import CompletenessRunStatus
from dataquality.rules import completeness
from dataquality.rules.defaults import DEFAULT_CONFIGS
from dataquality.store import STORE, SqlStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class RecomputeSchedule:
    page_size: int
    entity_types: tuple[str, ...]


def _page_size_from_env(default: int = 500) -> int:
    raw = os.getenv("DATAQUALITY_RECOMPUTE_PAGE_SIZE")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


DEFAULT_SCHEDULE = RecomputeSchedule(
    page_size=500,
    entity_types=tuple(DEFAULT_CONFIGS),
)


class CompletenessRecomputeRunner:
    """Rescore every stored entity of every supported type.

    Each entity type is processed in keyset-ordered pages with its
    configuration fetched once.  A failing entity is counted and skipped; a
    failing type is reported and the sweep moves on.  ``cancel_event`` is
    honoured between types only.
    """

    def __init__(self, schedule: RecomputeSchedule = DEFAULT_SCHEDULE) -> None:
        self.schedule = schedule

    def describe_schedule(self) -> dict[str, Any]:
        return {
            "page_size": self.schedule.page_size,
            "entity_types": list(self.schedule.entity_types),
        }

    def supported_entity_types(self, store: SqlStore) -> list[str]:
        types = list(self.schedule.entity_types)
        extra = sorted(set(store.list_configured_entity_types()) - set(types))
        return types + extra

    def recompute_all(
        self,
        *,
        entity_types: list[str] | None = None,
        page_size: int | None = None,
        cancel_event: threading.Event | None = None,
        store: SqlStore | None = None,
    ) -> dict[str, Any]:
        store = store or STORE
        size = page_size if page_size is not None else _page_size_from_env(self.schedule.page_size)
        if size < 1:
            raise ValueError("INVALID_PAGE_SIZE")
        types = list(entity_types) if entity_types is not None else self.supported_entity_types(store)

        run = store.start_completeness_run(types, size)
        run_id = run["id"]
        log_with_context(
            logger,
            logging.INFO,
            "Completeness recompute started",
            run_id=run_id,
            entity_types=",".join(types),
            page_size=size,
        )

        report: list[dict[str, Any]] = []
        processed = 0
        failed = 0
        cancelled = False
        type_failures = 0

        for entity_type in types:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                report.append({"entity_type": entity_type, "status": "skipped", "processed": 0, "failed": 0})
                continue

            entry = self._recompute_type(store, run_id, entity_type, size)
            report.append(entry)
            processed += entry["processed"]
            failed += entry["failed"]
            if entry["status"] == "failed":
                type_failures += 1

        if cancelled:
            status = CompletenessRunStatus.CANCELLED
        elif types and type_failures == len(types):
            status = CompletenessRunStatus.FAILED
        elif failed or type_failures:
            status = CompletenessRunStatus.PARTIAL
        else:
            status = CompletenessRunStatus.SUCCEEDED

        summary = store.finish_completeness_run(
            run_id,
            status=status,
            processed=processed,
            failed=failed,
            report=report,
        )
        log_with_context(
            logger,
            logging.INFO,
            "Completeness recompute finished",
            run_id=run_id,
            status=status.value,
            processed=processed,
            failed=failed,
        )
        return summary

    def _recompute_type(self, store: SqlStore, run_id: str, entity_type: str, page_size: int) -> dict[str, Any]:
        entry: dict[str, Any] = {"entity_type": entity_type, "status": "succeeded", "processed": 0, "failed": 0}
        try:
            config = store.get_config(entity_type)
            for page in store.iter_entity_pages(entity_type, page_size=page_size):
                for entity in page:
                    try:
                        result = completeness.calculate(entity["data"], config)
                        store.save_completeness(entity_type, entity["id"], result)
                    except Exception as exc:  # noqa: BLE001
                        entry["failed"] += 1
                        log_with_context(
                            logger,
                            logging.WARNING,
                            "Failed to recompute entity completeness",
                            run_id=run_id,
                            entity_type=entity_type,
                            entity_id=entity["id"],
                            error=str(exc),
                        )
                        continue
                    entry["processed"] += 1
        except Exception as exc:  # noqa: BLE001
            entry["status"] = "failed"
            entry["error"] = exc.args[0] if exc.args and isinstance(exc.args[0], str) else type(exc).__name__
            log_with_context(
                logger,
                logging.ERROR,
                "Completeness recompute failed for entity type",
                run_id=run_id,
                entity_type=entity_type,
                error=str(exc),
                exc_info=True,
            )
            return entry

        if entry["failed"]:
            entry["status"] = "partial"
        return entry

    def list_runs(self, limit: int = 20, store: SqlStore | None = None) -> list[dict[str, Any]]:
        return (store or STORE).list_completeness_runs(limit=limit)


RUNNER = CompletenessRecomputeRunner()
