"""Tombstone sweep run at application start."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from ..cache.data_cache import DataCache
from ..core.enums import EntityKind
from ..db.models import utcnow
from ..utils.logging_config import get_logger, log_exception
from .entity_store import EntityStore

logger = get_logger("gc")

DEFAULT_RETENTION = timedelta(days=7)


@dataclass
class GCReport:
    """Outcome of one sweep."""

    cutoff: datetime
    erased: Dict[EntityKind, int] = field(default_factory=dict)
    retained_unpushed: int = 0

    @property
    def total_erased(self) -> int:
        return sum(self.erased.values())


class GarbageCollector:
    """Erases soft-deleted records once they are older than the retention window."""

    def __init__(
        self,
        store: EntityStore,
        retention: timedelta = DEFAULT_RETENTION,
        require_pushed: bool = True,
        cache: Optional[DataCache] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.retention = retention
        self.require_pushed = require_pushed
        self.cache = cache
        self._clock = clock

    def sweep(self) -> GCReport:
        """
        Erase every tombstone with ``now - deleted_at >= retention``.

        All kinds are erased in one transaction. When ``require_pushed`` is
        set, a tombstone of a record the remote already holds is kept until
        the remote has acknowledged its deleted version; records the remote
        never saw are erased on age alone.

        Returns:
            Report with erased counts per kind
        """
        cutoff = self._clock() - self.retention

        report = GCReport(cutoff=cutoff)
        if self.require_pushed:
            report.retained_unpushed = self.store.count_unpushed_tombstones(cutoff)

        report.erased = self.store.erase_tombstones(cutoff, require_pushed=self.require_pushed)

        if report.total_erased and self.cache is not None:
            for kind, count in report.erased.items():
                if count:
                    self.cache.invalidate_pattern(f"{kind.value}:")

        logger.info(
            f"GC sweep erased {report.total_erased} tombstone(s) older than {cutoff.isoformat()}"
            + (f", kept {report.retained_unpushed} unpushed" if report.retained_unpushed else "")
        )
        return report


def run_startup_gc(collector: GarbageCollector) -> Optional[GCReport]:
    """Run one sweep; failures are logged and retried on the next start."""
    try:
        return collector.sweep()
    except Exception as e:
        log_exception("gc", e, {"phase": "startup"})
        return None
