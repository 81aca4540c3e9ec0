from typing import Callable, List, Optional
import asyncio
import logging

from ragdesk.schemas.document import BatchIngestionResult, FileUpload, IngestionResult
from ragdesk.services.rag.ingestion import IngestionOrchestrator, ProgressCallback, _no_progress

logger = logging.getLogger(__name__)


class BatchIngestionCoordinator:
    """
    Runs an orchestrator over several files.

    Each file succeeds or fails on its own; the orchestrator never raises, so
    one failure cannot cancel its siblings. Progress is reported once before
    and once after the batch, never per file.
    """

    def __init__(self, orchestrator: IngestionOrchestrator, concurrency: int = 10):
        self.orchestrator = orchestrator
        self.concurrency = concurrency

    async def run_parallel(
        self,
        files: List[FileUpload],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchIngestionResult:
        """Ingest all files concurrently, at most ``concurrency`` at a time"""
        progress = on_progress or _no_progress
        self._safe_report(progress, "Preparing your document..." if len(files) == 1 else f"Preparing {len(files)} documents...")

        semaphore = asyncio.Semaphore(self.concurrency)

        async def ingest_one(file: FileUpload) -> IngestionResult:
            async with semaphore:
                return await self.orchestrator.ingest(file)

        results = await asyncio.gather(*(ingest_one(file) for file in files))
        return self._summarize(list(results), progress)

    async def run_sequential(
        self,
        files: List[FileUpload],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchIngestionResult:
        """Ingest files one at a time to stay under provider rate limits"""
        progress = on_progress or _no_progress
        self._safe_report(progress, "Processing document..." if len(files) == 1 else f"Processing {len(files)} documents...")

        results = []
        for file in files:
            results.append(await self.orchestrator.ingest(file))
        return self._summarize(results, progress)

    def _summarize(self, results: List[IngestionResult], progress: Callable[[str], object]) -> BatchIngestionResult:
        summary = BatchIngestionResult.from_results(results)
        total = len(results)
        if summary.fail_count == 0:
            self._safe_report(progress, "Document ready!" if total == 1 else "All documents ready!")
        elif summary.success_count == 0:
            self._safe_report(progress, "Document processing failed.")
        else:
            self._safe_report(progress, f"{summary.success_count} of {total} documents ready.")

        logger.info(f"Batch finished: {summary.success_count} succeeded, {summary.fail_count} failed")
        return summary

    @staticmethod
    def _safe_report(progress: Callable[[str], object], message: str) -> None:
        try:
            progress(message)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
