"""Worker pool with exception handling for parallel subject processing.

Wraps ThreadPoolExecutor so one failing item never takes down the batch:
each item yields (success, item, result_or_error).
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional


class WorkerPool:
    """ThreadPoolExecutor wrapper with exception handling for scoring tasks."""

    def __init__(self, max_workers: int = 8, logger=None, label: Optional[Callable] = None):
        """
        Initialize worker pool.

        Args:
            max_workers: Maximum number of concurrent worker threads
            logger: Optional logger instance for logging
            label: Optional callable rendering an item for log lines
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)
        self.label = label or str
        self._stats_lock = threading.Lock()
        self.stats = {
            "max_workers": max_workers,
            "total_submitted": 0,
            "total_completed": 0,
            "total_successful": 0,
            "total_failed": 0,
        }

    def map(self, func: Callable, items: list, desc: str = "Processing") -> list:
        """
        Process items in parallel with exception handling.

        Args:
            func: Worker function to execute
            items: List of items to process
            desc: Description for progress reporting

        Returns:
            List of tuples (success, item, result_or_error), in input order
        """
        results: list = [None] * len(items)
        if not items:
            return []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {executor.submit(func, item): i for i, item in enumerate(items)}
            with self._stats_lock:
                self.stats["total_submitted"] += len(items)

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                item = items[index]
                with self._stats_lock:
                    self.stats["total_completed"] += 1

                try:
                    result = future.result()
                    with self._stats_lock:
                        self.stats["total_successful"] += 1
                    results[index] = (True, item, result)
                    self.logger.debug(f"{desc}: Success for {self.label(item)}")

                except Exception as e:
                    with self._stats_lock:
                        self.stats["total_failed"] += 1
                    results[index] = (False, item, e)
                    self.logger.error(f"{desc}: Failed for {self.label(item)}: {e}", exc_info=True)

        self.logger.info(
            f"{desc} complete: {self.stats['total_successful']} successful, {self.stats['total_failed']} failed"
        )
        return results

    def get_stats(self) -> dict:
        """Get worker pool statistics."""
        with self._stats_lock:
            return dict(self.stats)
