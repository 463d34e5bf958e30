"""Crawl Supreme Court civil rulings from the FJUD portal.

Workflow for one date window:

- Search the portal and resolve every listed ruling to its permanent link.
- Extract the text and export link of each ruling through the session pool.
- Reshape the text into labelled sections.
- Write ``<case_number>.txt`` (and the portal's PDF export) to the destination.

Per-ruling failures are logged and counted; only pipeline-level failures
(pagination, sessions, the destination folder) abort the run.
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import asdict, dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from . import config
from .config import CrawlOptions
from .config_validation import validate_options
from .date_utils import DateWindow
from .error_codes import CrawlError, ErrorCode, PoolClosedError, SessionCreationError
from .extractor import ContentExtractor
from .logging_utils import _crawl_event
from .models import RulingMetadata
from .reformat import ReformatEngine
from .replay_session import ReplaySessionFactory
from .search import SearchPipeline
from .session import PlaywrightSessionFactory, SessionFactory
from .session_pool import SessionPool
from .utils import log_line, setup_run_logger
from .writers import ExportPdfDownloader, Sink, TextWriter

_FATAL = (SessionCreationError, PoolClosedError)


@dataclass
class CrawlSummary:
    window: str
    pages: int = 0
    found: int = 0
    resolved: int = 0
    written: int = 0
    skipped: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)

    def record_failure(self, case_number: str, exc: BaseException) -> None:
        error_code = getattr(exc, "error_code", None) or ErrorCode.INTERNAL
        self.failures.append(
            {"case_number": case_number, "error_code": error_code, "message": str(exc)}
        )
        _crawl_event(
            "error",
            phase="ruling",
            case_number=case_number,
            error_code=error_code,
            error=str(exc),
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def describe(self) -> str:
        return (
            f"[RUN] {self.window}: pages={self.pages} found={self.found} "
            f"resolved={self.resolved} written={self.written} skipped={self.skipped} "
            f"failures={len(self.failures)}"
        )


def default_sinks(destination: Path, options: CrawlOptions) -> List[Sink]:
    sinks: List[Sink] = [TextWriter(destination)]
    if options.export_pdf:
        sinks.append(ExportPdfDownloader(destination, options))
    return sinks


async def _process_ruling(
    metadata: RulingMetadata,
    *,
    pool: SessionPool,
    extractor: ContentExtractor,
    engine: ReformatEngine,
    sinks: Sequence[Sink],
    summary: CrawlSummary,
) -> None:
    try:
        content = await pool.with_session(partial(extractor.extract, metadata=metadata))
        if not content.is_valid:
            summary.skipped += 1
            return
        document = engine.reformat(content.raw_text)
        _crawl_event(
            "reformat",
            kind="reformatted",
            case_number=metadata.case_number,
            lines=sum(len(section.lines) for section in document),
        )
    except _FATAL:
        raise
    except CrawlError as exc:
        summary.record_failure(metadata.case_number, exc)
        return

    written = False
    for sink in sinks:
        try:
            path = await asyncio.to_thread(sink.write, document, content)
        except (CrawlError, OSError, ValueError) as exc:
            summary.record_failure(metadata.case_number, exc)
            continue
        written = written or path is not None
    if written:
        summary.written += 1


async def crawl(
    window: DateWindow,
    destination: Path,
    options: Optional[CrawlOptions] = None,
    *,
    factory: Optional[SessionFactory] = None,
    sinks: Optional[Sequence[Sink]] = None,
) -> CrawlSummary:
    """Crawl one date window into ``destination``."""

    options = options or CrawlOptions.from_config()
    destination = Path(destination)

    factory = factory or PlaywrightSessionFactory(options)
    pool = SessionPool.from_options(factory, options)
    pipeline = SearchPipeline(pool, options)
    extractor = ContentExtractor(options)
    engine = ReformatEngine()
    sinks = list(sinks) if sinks is not None else default_sinks(destination, options)
    summary = CrawlSummary(window=str(window))

    _crawl_event(
        "run",
        kind="start",
        window=str(window),
        destination=str(destination),
        max_sessions=options.max_sessions,
    )
    try:
        destination.mkdir(parents=True, exist_ok=True)
        rulings = await pipeline.run(window)
        summary.pages = pipeline.page_count
        summary.found = pipeline.found_count
        summary.resolved = len(rulings)

        results = await asyncio.gather(
            *(
                _process_ruling(
                    metadata,
                    pool=pool,
                    extractor=extractor,
                    engine=engine,
                    sinks=sinks,
                    summary=summary,
                )
                for metadata in rulings
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
    finally:
        await pool.drain()
        await factory.close()
        _crawl_event(
            "run",
            kind="end",
            window=str(window),
            peak_sessions=pool.peak_borrowed,
            written=summary.written,
            failures=len(summary.failures),
        )

    log_line(summary.describe())
    return summary


def run_crawl(
    window: DateWindow,
    destination: Path,
    options: Optional[CrawlOptions] = None,
    *,
    factory: Optional[SessionFactory] = None,
) -> CrawlSummary:
    """Blocking wrapper around :func:`crawl`."""

    return asyncio.run(crawl(window, destination, options, factory=factory))


def _cli_entrypoint(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Download Supreme Court civil rulings from the FJUD portal"
    )
    parser.add_argument("--start", required=True, help="First ruling date, YYYY-MM-DD")
    parser.add_argument("--end", required=True, help="Last ruling date, YYYY-MM-DD")
    parser.add_argument(
        "-d",
        "--destination",
        default=str(config.DOWNLOAD_DIR),
        help="Folder receiving <case number>.txt files",
    )
    parser.add_argument("--max-sessions", type=int, default=None)
    parser.add_argument("--no-export-pdf", action="store_true", default=False)
    parser.add_argument("--headed", action="store_true", default=False)
    parser.add_argument(
        "--replay",
        metavar="DIR",
        default=None,
        help="Crawl saved portal pages listed in DIR/index.json instead of the live site",
    )

    args = parser.parse_args(argv)

    try:
        window = DateWindow.parse(args.start, args.end)
    except ValueError as exc:
        parser.error(str(exc))

    entrypoint = "replay" if args.replay else "cli"
    options = CrawlOptions.from_config(
        max_sessions=args.max_sessions,
        headless=False if args.headed else None,
        # Replays never touch the network.
        export_pdf=False if (args.no_export_pdf or args.replay) else None,
    )
    try:
        options = validate_options(options, entrypoint)
    except ValueError as exc:
        parser.error(str(exc))

    setup_run_logger()
    try:
        factory = ReplaySessionFactory.from_directory(Path(args.replay)) if args.replay else None
        run_crawl(window, Path(args.destination), options, factory=factory)
    except (CrawlError, OSError, ValueError) as exc:
        _crawl_event(
            "error",
            phase="run",
            error_code=getattr(exc, "error_code", ErrorCode.INTERNAL),
            error=str(exc),
        )
        log_line(f"[RUN] Crawl failed: {exc}")
        return 1
    return 0


__all__ = ["CrawlSummary", "crawl", "run_crawl", "default_sinks", "_cli_entrypoint"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(_cli_entrypoint())
