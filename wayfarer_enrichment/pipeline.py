"""
Batch orchestrator.

One run selects up to `batch_size` incomplete entities for a single task,
and for each: re-checks completeness, claims it, waits its turn with the
pacer, generates, validates and persists, then releases the claim. A
failure on one entity is recorded and the run moves on; only losing the
store aborts the run.
"""

import json
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

import pandas as pd

from wayfarer_enrichment.config import EnrichmentConfig
from wayfarer_enrichment.errors import EnrichmentError, GenerationCancelled, StoreUnavailable
from wayfarer_enrichment.generation import CancellationToken, Pacer
from wayfarer_enrichment.tasks import EnrichmentTask

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"
SKIPPED = "skipped"
PLANNED = "planned"


@dataclass
class EntityOutcome:
    entity_id: int
    label: str
    status: str
    kind: Optional[str] = None
    detail: Optional[str] = None
    duration_ms: int = 0


@dataclass
class RunReport:
    run_id: str
    entity_type: str
    batch_size: int
    threshold: int
    dry_run: bool = False
    selected: int = 0
    outcomes: List[EntityOutcome] = field(default_factory=list)
    stop_reason: Optional[str] = None
    elapsed_seconds: float = 0.0

    def _count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(FAILED)

    @property
    def skipped(self) -> int:
        return self._count(SKIPPED)

    @property
    def planned(self) -> int:
        return self._count(PLANNED)

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed

    @property
    def failures_by_kind(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for o in self.outcomes:
            if o.status == FAILED:
                counts[o.kind or "error"] = counts.get(o.kind or "error", 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "entity_type": self.entity_type,
            "batch_size": self.batch_size,
            "threshold": self.threshold,
            "dry_run": self.dry_run,
            "selected": self.selected,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "planned": self.planned,
            "failures_by_kind": self.failures_by_kind,
            "stop_reason": self.stop_reason,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "outcomes": [asdict(o) for o in self.outcomes],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def to_table(self) -> pd.DataFrame:
        columns = [f.name for f in fields(EntityOutcome)]
        return pd.DataFrame([asdict(o) for o in self.outcomes], columns=columns)

    def summary(self) -> str:
        line = (
            f"{self.entity_type}: {self.succeeded} succeeded, {self.failed} failed, "
            f"{self.skipped} skipped of {self.selected} selected"
        )
        if self.dry_run:
            line += f" (dry run, {self.planned} planned)"
        if self.stop_reason:
            line += f"; stopped early: {self.stop_reason}"
        return line


class EnrichmentPipeline:
    def __init__(
        self,
        task: EnrichmentTask,
        store,
        client,
        config: EnrichmentConfig,
        run_id: Optional[str] = None,
        clock=time.monotonic,
    ):
        self.task = task
        self.store = store
        self.client = client
        self.config = config
        self.run_id = run_id or uuid.uuid4().hex
        self.clock = clock
        self.threshold = (
            config.completeness_threshold
            if config.completeness_threshold is not None
            else task.default_threshold
        )

    def run(self, token: Optional[CancellationToken] = None) -> RunReport:
        token = token or CancellationToken()
        started = self.clock()
        report = RunReport(
            run_id=self.run_id,
            entity_type=self.task.name,
            batch_size=self.config.batch_size,
            threshold=self.threshold,
            dry_run=self.config.dry_run,
        )

        candidates = self.task.select(self.store, self.config.batch_size, self.threshold)[: self.config.batch_size]
        report.selected = len(candidates)
        logger.info(
            f"Run {self.run_id}: {len(candidates)} {self.task.name} candidates "
            f"(batch_size={self.config.batch_size}, threshold={self.threshold}, dry_run={self.config.dry_run})"
        )

        pacer = Pacer(self.config.request_delay, self.config.batch_delay, token, clock=self.clock)
        deadline = started + self.config.deadline_seconds if self.config.deadline_seconds else None

        try:
            if self.config.max_workers <= 1 or self.config.dry_run:
                for entity in candidates:
                    outcome = self._process(entity, pacer, token, deadline)
                    if outcome is None:
                        break
                    report.outcomes.append(outcome)
            else:
                self._run_concurrent(candidates, pacer, token, deadline, report)
        finally:
            report.stop_reason = token.reason
            report.elapsed_seconds = self.clock() - started

        logger.info(report.summary())
        return report

    def _run_concurrent(self, candidates, pacer, token, deadline, report) -> None:
        size = self.config.max_workers
        chunks = [candidates[i:i + size] for i in range(0, len(candidates), size)]
        with ThreadPoolExecutor(max_workers=size) as executor:
            for n, chunk in enumerate(chunks):
                if n > 0 and not pacer.between_batches():
                    break
                futures = [executor.submit(self._process, entity, pacer, token, deadline) for entity in chunk]
                for future in futures:
                    try:
                        outcome = future.result()
                    except StoreUnavailable:
                        token.cancel("store unavailable")
                        raise
                    if outcome is not None:
                        report.outcomes.append(outcome)
                if token.cancelled:
                    break

    def _process(self, entity, pacer: Pacer, token: CancellationToken, deadline) -> Optional[EntityOutcome]:
        """Handle one entity; None means the run stopped before it was started."""
        if token.cancelled:
            return None
        if deadline is not None and self.clock() >= deadline:
            token.cancel("deadline reached")
            return None

        label = self.task.label(entity)
        entity_id = entity["id"]
        started = self.clock()

        def outcome(status, kind=None, detail=None):
            return EntityOutcome(entity_id, label, status, kind, detail, int((self.clock() - started) * 1000))

        # Selection can be stale by the time an entity's turn comes.
        if not self.task.needs_enrichment(entity, self.threshold):
            return outcome(SKIPPED, detail="already complete")

        if self.config.dry_run:
            prompt = self.task.build_prompt(entity, self.threshold)
            logger.info(f"[dry run] {label}: {len(prompt.user)} char prompt for {prompt.schema_name}")
            return outcome(PLANNED, detail=prompt.schema_name)

        if not self.store.claim(self.task.name, entity_id, self.run_id):
            logger.info(f"Skipping {label}: claimed by another run")
            return outcome(SKIPPED, detail="claimed by another run")

        try:
            # Another run may have finished this entity between our select and our claim.
            current = self.task.refresh(self.store, entity)
            if current is None or not self.task.needs_enrichment(current, self.threshold):
                logger.info(f"Skipping {label}: completed since selection")
                return outcome(SKIPPED, detail="already complete")

            prompt = self.task.build_prompt(current, self.threshold)
            if not pacer.wait_turn():
                return None
            data = self.client.generate(prompt, token=token)
            self.task.persist(self.store, current, data, self.threshold)
            logger.info(f"Enriched {label}")
            return outcome(SUCCEEDED)
        except StoreUnavailable:
            raise
        except GenerationCancelled:
            logger.info(f"Stopped while enriching {label}: {token.reason}")
            return None
        except EnrichmentError as e:
            logger.warning(f"Failed to enrich {label} ({e.kind}): {e}")
            return outcome(FAILED, kind=e.kind, detail=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error enriching {label}")
            return outcome(FAILED, kind="unexpected", detail=f"{type(e).__name__}: {e}")
        finally:
            self.store.release(self.task.name, entity_id, self.run_id)
