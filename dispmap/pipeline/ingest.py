"""Ingestion run: fetch, scrape, classify, resolve and upsert dispensaries."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable

from dispmap.common.config_loader import ConfigBundle
from dispmap.common.errors import PipelineError, RunInProgressError
from dispmap.common.http import HttpClient, TimeoutConfig
from dispmap.common.logging import log_event
from dispmap.common.models import DispensaryRecord
from dispmap.common.time_utils import elapsed_ms, generate_run_id
from dispmap.pipeline.coordinates import (
    SOURCE_CACHE,
    SOURCE_GEOCODER,
    CoordinateCache,
    CoordinateResolver,
)
from dispmap.pipeline.normalise import normalise_row
from dispmap.pipeline.reports import RunResult
from dispmap.pipeline.scrape import iter_table_rows
from dispmap.pipeline.store import RecordStore
from dispmap.sources.geocoder import NominatimGeocoder
from dispmap.sources.listing import fetch_listing_html
from dispmap.sources.zip_lookup import ZipSetResult, classify, fetch_target_zip_set

logger = logging.getLogger(__name__)


def _timeout(section: dict) -> TimeoutConfig | None:
    seconds = section.get("timeout_seconds")
    if seconds is None:
        return None
    return TimeoutConfig(connect=min(float(seconds), 10.0), read=float(seconds))


class IngestionPipeline:
    """Owns every write to the record store. Runs never overlap."""

    def __init__(
        self,
        *,
        fetch_html: Callable[[], str],
        fetch_zip_set: Callable[[], ZipSetResult],
        resolver: CoordinateResolver,
        store: RecordStore,
        max_geocodes: int | None = None,
    ) -> None:
        self.fetch_html = fetch_html
        self.fetch_zip_set = fetch_zip_set
        self.resolver = resolver
        self.store = store
        self.max_geocodes = max_geocodes
        self._run_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        bundle: ConfigBundle,
        *,
        client: HttpClient,
        store: RecordStore,
        cache: CoordinateCache,
        max_geocodes: int | None = None,
    ) -> "IngestionPipeline":
        cfg = bundle.pipeline
        geocoder_cfg = cfg["geocoder"]
        geocoder = NominatimGeocoder(
            client,
            geocoder_cfg["endpoint"],
            country_codes=geocoder_cfg.get("country_codes"),
            max_attempts=int(geocoder_cfg.get("max_attempts", 1)),
            timeout=_timeout(geocoder_cfg),
        )
        return cls(
            fetch_html=partial(
                fetch_listing_html,
                client,
                bundle.listing_url,
                timeout=_timeout(cfg["listing"]),
            ),
            fetch_zip_set=partial(
                fetch_target_zip_set,
                client,
                cfg["zip_lookup"]["endpoint"],
                bundle.regions,
                timeout=_timeout(cfg["zip_lookup"]),
            ),
            resolver=CoordinateResolver(cache, geocoder),
            store=store,
            max_geocodes=max_geocodes if max_geocodes is not None else bundle.max_geocodes,
        )

    def run_ingestion(self, run_id: str | None = None) -> RunResult:
        if not self._run_lock.acquire(blocking=False):
            raise RunInProgressError("An ingestion run is already in progress")
        try:
            return self._run(run_id or generate_run_id())
        finally:
            self._run_lock.release()

    def _fetch_inputs(self, result: RunResult) -> tuple[str | None, frozenset[str]]:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="dispmap-fetch") as pool:
            html_future = pool.submit(self.fetch_html)
            zip_future = pool.submit(self.fetch_zip_set)

            html: str | None = None
            try:
                html = html_future.result()
            except Exception as exc:
                result.fatal_error = str(exc) or type(exc).__name__
                log_event(
                    logger,
                    f"listing fetch failed: {exc}",
                    level=logging.ERROR,
                    stage="fetch",
                    event="FETCH_FAIL",
                    status="error",
                    error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                )

            zip_set: frozenset[str] = frozenset()
            try:
                zip_result = zip_future.result()
            except Exception as exc:
                result.zip_error = str(exc) or type(exc).__name__
                log_event(
                    logger,
                    f"zip set unavailable, classifying every record as outside the area: {exc}",
                    level=logging.WARNING,
                    stage="zip_lookup",
                    event="ZIP_SET_FAIL",
                    status="error",
                    error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                )
            else:
                zip_set = zip_result.codes
                result.region_failures = {name: str(exc) for name, exc in zip_result.failures.items()}
        return html, zip_set

    def _candidates(self, html: str, zip_set: frozenset[str], result: RunResult) -> dict[str, DispensaryRecord]:
        records: dict[str, DispensaryRecord] = {}
        for row in iter_table_rows(html):
            record = normalise_row(row)
            if record is None:
                result.skipped_rows += 1
                continue
            if record.name in records:
                result.duplicate_names += 1
            records[record.name] = record.with_changes(is_in_target_area=classify(record, zip_set))
        return records

    def _carry_forward(self, record: DispensaryRecord) -> DispensaryRecord:
        if record.is_delivery_only or record.full_address is None:
            return record
        existing = self.store.find_by_key(record.name)
        if existing is None or existing.coordinate is None:
            return record
        if existing.full_address != record.full_address:
            return record
        return record.with_changes(coordinate=existing.coordinate)

    def _resolve(self, record: DispensaryRecord, result: RunResult, state: dict) -> DispensaryRecord:
        if not record.needs_coordinate:
            return record

        needs_network = self.resolver.cache.get(record.full_address) is None
        if needs_network:
            capped = self.max_geocodes is not None and state["geocode_attempts"] >= self.max_geocodes
            if capped or state["backing_off"]:
                result.deferred += 1
                return record
            state["geocode_attempts"] += 1

        resolution = self.resolver.lookup(record)
        if resolution.source == SOURCE_CACHE:
            result.cache_hits += 1
        elif resolution.source == SOURCE_GEOCODER:
            result.geocoded += 1
        elif resolution.error is not None:
            if resolution.rate_limited:
                # Stop hitting the geocoder for the rest of this run.
                state["backing_off"] = True
                result.rate_limited_records.append(record.name)
            else:
                result.geocode_failures[record.name] = str(resolution.error)

        if resolution.coordinate is None:
            return record
        return record.with_changes(coordinate=resolution.coordinate)

    def _tally(self, record: DispensaryRecord, result: RunResult) -> None:
        result.total += 1
        if record.is_delivery_only:
            result.delivery_only += 1
        if record.is_in_target_area:
            result.in_area += 1
        if record.coordinate is not None:
            result.resolved += 1
        elif not record.is_delivery_only:
            result.unresolved += 1

    def _run(self, run_id: str) -> RunResult:
        result = RunResult(run_id=run_id)
        started = time.monotonic()
        log_event(logger, "ingestion start", run_id=run_id, stage="ingest", event="RUN_START", status="ok")

        html, zip_set = self._fetch_inputs(result)
        if html is None:
            result.duration_ms = elapsed_ms(started, time.monotonic())
            return result

        try:
            candidates = self._candidates(html, zip_set, result)
        except PipelineError as exc:
            result.fatal_error = str(exc)
            result.duration_ms = elapsed_ms(started, time.monotonic())
            log_event(
                logger,
                f"listing could not be parsed: {exc}",
                level=logging.ERROR,
                run_id=run_id,
                stage="scrape",
                event="PARSE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            return result

        state = {"geocode_attempts": 0, "backing_off": False}
        for record in candidates.values():
            record = self._carry_forward(record)
            record = self._resolve(record, result, state)
            self.store.upsert(record.name, record.to_fields())
            self._tally(record, result)

        result.duration_ms = elapsed_ms(started, time.monotonic())
        log_event(
            logger,
            "ingestion end",
            run_id=run_id,
            stage="ingest",
            event="RUN_END",
            status=result.status,
            rows_in=len(candidates) + result.duplicate_names + result.skipped_rows,
            rows_out=result.total,
            duration_ms=result.duration_ms,
        )
        return result
