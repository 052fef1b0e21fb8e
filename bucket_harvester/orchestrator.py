"""Harvest orchestration: paginated fetch, dedup merge and checkpointed dumps."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Protocol

import structlog

from .config import BucketQuery, ConfigRepository, DatasetConfig
from .engine import BucketClient, BucketResponse, DeduplicationStore, ParsedRecord, paginate
from .errors import TransportError
from .infra import DatabaseDump, DumpStore, create_dump, utc_now
from .logging_conf import configure_logging, dataset_logger
from .ui import ProgressReporter


class BucketTransport(Protocol):
    def execute(self, options: BucketQuery) -> BucketResponse: ...


@dataclass
class FetchState:
    """Mutable state of a single harvest run."""

    accumulated: list[ParsedRecord]
    dedup: DeduplicationStore
    offset: int = 0
    initial_count: int = 0

    @property
    def seen_keys(self) -> set[str]:
        return self.dedup.seen_keys

    def reset(self) -> None:
        self.accumulated = []
        self.dedup.reset()
        self.offset = 0
        self.initial_count = 0


@dataclass
class HarvestSummary:
    dataset: str
    output_path: str
    total_items: int = 0
    added: int = 0
    duplicates: int = 0
    decode_errors: int = 0
    chunks: int = 0
    failures: int = 0
    final_offset: int = 0

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


class Harvester:
    """Drive one dataset from the Bucket API into its dump file.

    Each chunk is fetched at ``offset``, deduplicated against every key seen
    so far and appended; the offset then advances by one page even when the
    chunk was empty. The run ends after ``max_empty_chunks`` consecutive
    empty chunks. Transport failures checkpoint, back off and retry the same
    offset without limit. Storage failures propagate.
    """

    def __init__(
        self,
        dataset: DatasetConfig,
        client: BucketTransport,
        output_path: Path,
        store: DumpStore | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utc_now,
        progress: ProgressReporter | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.dataset = dataset
        self.client = client
        self.output_path = output_path
        self.logger = logger or structlog.get_logger("bucket_harvester.harvester").bind(
            dataset=dataset.name
        )
        self.store = store or DumpStore(logger=self.logger)
        self.sleep = sleep
        self.clock = clock
        self.progress = progress or ProgressReporter(enabled=False)

    # ------------------------------------------------------------------
    def initialize_state(self) -> FetchState:
        dedup = DeduplicationStore.for_dataset(self.dataset, logger=self.logger)
        dump = self.store.load(self.output_path)
        if dump is None:
            self.logger.info("starting_fresh", path=str(self.output_path))
            return FetchState(accumulated=[], dedup=dedup)

        accumulated = self._restore_items(dump)
        dedup.seed(accumulated)
        offset = dump.metadata.last_data_offset if self.dataset.track_offset else 0
        self.logger.info(
            "existing_data_loaded",
            items=len(accumulated),
            resume_offset=offset,
        )
        return FetchState(
            accumulated=accumulated,
            dedup=dedup,
            offset=offset,
            initial_count=len(accumulated),
        )

    def _restore_items(self, dump: DatabaseDump) -> list[ParsedRecord]:
        restored: list[ParsedRecord] = []
        skipped = 0
        for item in dump.items:
            record = ParsedRecord.from_item(item)
            if record is None:
                skipped += 1
            else:
                restored.append(record)
        if skipped:
            self.logger.warning("dump_items_skipped", skipped=skipped)
        return restored

    def fetch_chunk(self, offset: int) -> list[dict]:
        options = paginate(self.dataset.query, self.dataset.page_size, offset)
        response = self.client.execute(options)
        return response.records

    def save_progress(self, state: FetchState) -> None:
        last_offset = state.offset if self.dataset.track_offset else 0
        dump = create_dump(
            [record.to_item() for record in state.accumulated],
            last_data_offset=last_offset,
            fetched_at=self.clock(),
        )
        self.store.save(dump, self.output_path)
        self.logger.info("checkpoint_saved", items=len(state.accumulated), offset=state.offset)

    # ------------------------------------------------------------------
    def run(self, full_refresh: bool = False) -> HarvestSummary:
        state = self.initialize_state()
        if full_refresh:
            self.logger.info("full_refresh", discarded=len(state.accumulated))
            state.reset()
        elif state.accumulated and not self.dataset.track_offset:
            self.logger.info("merging_with_existing", items=len(state.accumulated))

        summary = HarvestSummary(dataset=self.dataset.name, output_path=str(self.output_path))
        page_size = self.dataset.page_size
        max_empty = self.dataset.max_empty_chunks
        consecutive_empty = 0

        self.progress.start(self.dataset.name, offset=state.offset, total_items=len(state.accumulated))
        try:
            while consecutive_empty < max_empty:
                try:
                    batch = self.fetch_chunk(state.offset)
                except TransportError as exc:
                    summary.failures += 1
                    self.logger.warning(
                        "fetch_failed",
                        offset=state.offset,
                        status=exc.status_code,
                        error=str(exc),
                        retry_in=self.dataset.retry_backoff,
                    )
                    self.progress.failure(state.offset, str(exc))
                    self.save_progress(state)
                    self.sleep(self.dataset.retry_backoff)
                    continue

                summary.chunks += 1
                if not batch:
                    consecutive_empty += 1
                    self.logger.info(
                        "chunk_empty",
                        offset=state.offset,
                        consecutive=consecutive_empty,
                        limit=max_empty,
                    )
                    self.progress.chunk(state.offset, 0, 0, 0, 0)
                else:
                    consecutive_empty = 0
                    result = state.dedup.check_and_store(batch)
                    state.accumulated.extend(result.records)
                    summary.added += result.added
                    summary.duplicates += result.duplicates
                    summary.decode_errors += result.decode_errors
                    self.logger.info(
                        "chunk_merged",
                        offset=state.offset,
                        fetched=len(batch),
                        added=result.added,
                        duplicates=result.duplicates,
                        decode_errors=result.decode_errors,
                    )
                    self.progress.chunk(
                        state.offset, len(batch), result.added, result.duplicates, result.decode_errors
                    )

                state.offset += page_size
                if summary.chunks % self.dataset.checkpoint_every == 0 or not batch:
                    self.save_progress(state)
                self.sleep(self.dataset.request_delay)

            self.save_progress(state)
        finally:
            self.progress.close()

        summary.total_items = len(state.accumulated)
        summary.final_offset = state.offset
        self.logger.info(
            "harvest_complete",
            total_items=summary.total_items,
            added=summary.added,
            chunks=summary.chunks,
            failures=summary.failures,
            output=str(self.output_path),
        )
        return summary


class Orchestrator:
    """Wire configuration, transport, storage and progress for CLI runs."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        client_factory: Callable[..., BucketClient] | None = None,
        store: DumpStore | None = None,
    ) -> None:
        self.config_repository = config_repository
        self.global_config = config_repository.load_global_config()
        self.client_factory = client_factory or BucketClient.from_config
        self.store = store or DumpStore()
        self.logger = configure_logging().bind(component="orchestrator")

    def output_path(self, dataset: DatasetConfig, override: Path | None = None) -> Path:
        if override is not None:
            return override.expanduser().resolve()
        return self.config_repository.output_path(dataset)

    def run_dataset(
        self,
        name: str,
        full_refresh: bool = False,
        output: Path | None = None,
        progress_enabled: bool = False,
    ) -> HarvestSummary:
        dataset = self.config_repository.load_dataset(name)
        log = dataset_logger(dataset.name)
        output_path = self.output_path(dataset, output)
        client = self.client_factory(self.global_config, logger=log)
        harvester = Harvester(
            dataset,
            client,
            output_path,
            store=DumpStore(logger=log),
            progress=ProgressReporter(enabled=progress_enabled),
            logger=log,
        )
        try:
            return harvester.run(full_refresh=full_refresh)
        finally:
            close = getattr(client, "close", None)
            if close is not None:
                close()

    def dump_info(self, name: str, output: Path | None = None) -> tuple[Path, DatabaseDump | None]:
        dataset = self.config_repository.load_dataset(name)
        path = self.output_path(dataset, output)
        return path, self.store.load(path)

    def run_query(self, query: str) -> BucketResponse:
        client = self.client_factory(self.global_config, logger=self.logger)
        try:
            return client.execute_raw(query)
        finally:
            client.close()


__all__ = ["FetchState", "HarvestSummary", "Harvester", "Orchestrator"]
