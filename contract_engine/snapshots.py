"""Parallel page snapshot rendering for fixed-layout documents."""

import io
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Optional

import fitz  # PyMuPDF
from PIL import Image

from contract_engine.config import RenderConfig
from contract_engine.logger import Timer, get_logger
from contract_engine.models import EngineWarning, PageSnapshot, WarningCode

logger = get_logger(__name__)

START_POLL_SECONDS = 0.05


class SnapshotRenderer:
    """Renders PDF pages to PNG snapshots on a bounded thread pool.

    A page that fails or runs past ``page_timeout_seconds`` is recorded as a
    warning and left without a snapshot; the other pages still complete.
    """

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def render_page(self, pdf_bytes: bytes, page_index: int) -> PageSnapshot:
        """Render a single page - worker function for parallel processing.

        Each call opens its own document handle; PyMuPDF documents must not
        be shared between threads.

        Args:
            pdf_bytes: Raw PDF bytes
            page_index: Page to render (0-indexed)

        Returns:
            PageSnapshot with PNG bytes and ink coverage
        """
        with fitz.open(stream=pdf_bytes, filetype="pdf") as document:
            pix = document[page_index].get_pixmap(dpi=self.config.dpi)
            png = pix.tobytes("png")

        image = Image.open(io.BytesIO(png))
        gray = image.convert("L")
        if self.config.grayscale:
            buffer = io.BytesIO()
            gray.save(buffer, format="PNG")
            png = buffer.getvalue()

        histogram = gray.histogram()
        total = gray.width * gray.height
        ink = sum(histogram[: self.config.white_threshold + 1])

        return PageSnapshot(
            page_number=page_index + 1,
            width_px=gray.width,
            height_px=gray.height,
            png=png,
            ink_coverage=round(ink / total, 4) if total else 0.0,
        )

    def _render_timed(
        self, pdf_bytes: bytes, page_index: int, started_at: dict[int, float]
    ) -> PageSnapshot:
        started_at[page_index] = time.monotonic()
        return self.render_page(pdf_bytes, page_index)

    def _await_page(
        self, future: Future, page_index: int, started_at: dict[int, float], stalled: bool
    ) -> PageSnapshot:
        """Wait for one page; its budget runs from when a worker picks it up.

        Raises:
            FuturesTimeoutError: If the page overran its budget, or never
                started because every worker is stuck on an abandoned page
        """
        while page_index not in started_at:
            if stalled:
                raise FuturesTimeoutError()
            try:
                return future.result(timeout=START_POLL_SECONDS)
            except FuturesTimeoutError:
                continue
        remaining = started_at[page_index] + self.config.page_timeout_seconds - time.monotonic()
        return future.result(timeout=max(remaining, 0.0))

    def render_all(
        self, pdf_bytes: bytes, page_count: int, file_name: str = "unknown.pdf"
    ) -> tuple[dict[int, PageSnapshot], list[EngineWarning]]:
        """Render up to ``max_pages`` pages concurrently.

        Args:
            pdf_bytes: Raw PDF bytes
            page_count: Number of pages in the document
            file_name: Original file name for logging

        Returns:
            Tuple of (snapshots keyed by 1-based page number, warnings)
        """
        snapshots: dict[int, PageSnapshot] = {}
        warnings: list[EngineWarning] = []

        if not self.config.enabled or page_count <= 0:
            return snapshots, warnings

        pages_to_render = min(page_count, self.config.max_pages)
        log = logger.bind(file_name=file_name)
        log.debug(
            "Starting parallel page rendering",
            extra_data={
                "page_count": pages_to_render,
                "max_workers": self.config.max_workers,
            },
        )

        workers = max(1, self.config.max_workers)
        executor = ThreadPoolExecutor(max_workers=workers)
        started_at: dict[int, float] = {}
        hung = 0
        try:
            with Timer("page_rendering") as timer:
                futures = {
                    page_index: executor.submit(self._render_timed, pdf_bytes, page_index, started_at)
                    for page_index in range(pages_to_render)
                }

                for page_index, future in futures.items():
                    page_number = page_index + 1
                    started = time.perf_counter()
                    try:
                        snapshots[page_number] = self._await_page(
                            future, page_index, started_at, stalled=hung >= workers
                        )
                    except FuturesTimeoutError:
                        if not future.cancel() and not future.done():
                            hung += 1
                        log.warning(
                            f"Rendering timed out for page {page_number}",
                            extra_data={
                                "page_number": page_number,
                                "waited_ms": int((time.perf_counter() - started) * 1000),
                            },
                        )
                        warnings.append(
                            EngineWarning(
                                WarningCode.PAGE_RENDER_TIMEOUT,
                                f"Page {page_number} exceeded {self.config.page_timeout_seconds}s",
                                page_number=page_number,
                            )
                        )
                    except Exception as exc:
                        log.warning(
                            f"Rendering failed for page {page_number}",
                            extra_data={
                                "page_number": page_number,
                                "error_type": type(exc).__name__,
                                "error": str(exc),
                            },
                        )
                        warnings.append(
                            EngineWarning(
                                WarningCode.PAGE_RENDER_FAILED,
                                f"Page {page_number}: {exc}",
                                page_number=page_number,
                            )
                        )
        finally:
            # A hung page must not block the request
            executor.shutdown(wait=False, cancel_futures=True)

        log.info(
            "Page rendering completed",
            extra_data={
                "pages_rendered": len(snapshots),
                "pages_failed": len(warnings),
                "render_time_ms": timer.get_elapsed_ms(),
            },
        )
        return snapshots, warnings
