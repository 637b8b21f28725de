"""
Batch scheduler for media2web.

Splits a working set into fixed-size batches and runs each batch on a
thread pool. Batches run strictly one after another; files inside a batch
run concurrently. Outcomes are collected in launch order, never in
completion order, so a run is reproducible regardless of encoder timing.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterator, List, Sequence, Tuple

from media2web.results import ConversionFailure, ConversionOutcome

logger = logging.getLogger(__name__)

# Handler signature: (file, zero-based index in the working set) -> outcome
FileHandler = Callable[[str, int], ConversionOutcome]


def iter_batches(files: Sequence[str], batch_size: int) -> Iterator[Tuple[int, Sequence[str]]]:
    """Yield (start_index, slice) pairs covering ``files`` in order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    for start in range(0, len(files), batch_size):
        yield start, files[start : start + batch_size]


def _settle(future: Future, file: str) -> ConversionOutcome:
    """Wait for a future; turn an escaped exception into a failure outcome."""
    try:
        return future.result()
    except Exception as e:
        logger.error("Handler raised for %s: %s", file, e)
        return ConversionFailure(file=file, error=str(e) or type(e).__name__)


def process_in_batches(
    files: Sequence[str],
    batch_size: int,
    handler: FileHandler,
) -> List[ConversionOutcome]:
    """
    Run ``handler`` over every file, at most ``batch_size`` at a time.

    Every file in a batch is submitted before any of them is awaited, and
    the whole batch settles before the next one is submitted. The returned
    list holds exactly one outcome per input file: batch order first, then
    position within the batch.

    Args:
        files: Working set of file identifiers.
        batch_size: Number of files converted concurrently (>= 1).
        handler: Per-file conversion. Expected to capture its own errors;
            anything it raises becomes a ConversionFailure.

    Returns:
        Outcomes in the same order as ``files``.
    """
    results: List[ConversionOutcome] = []
    if not files:
        return results

    workers = min(batch_size, len(files))
    total_batches = (len(files) + batch_size - 1) // batch_size

    # An interrupt propagates only after the running batch has settled;
    # later batches are never submitted.
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="media2web") as executor:
        for batch_no, (start, batch) in enumerate(iter_batches(files, batch_size), start=1):
            logger.debug("Batch %d/%d: %d file(s) from index %d", batch_no, total_batches, len(batch), start)
            futures = [executor.submit(handler, file, start + offset) for offset, file in enumerate(batch)]
            batch_results = [_settle(future, file) for future, file in zip(futures, batch)]
            results.extend(batch_results)

    return results
