"""Poster reachability probe.

Optional I/O step run before scoring: each poster URL gets a HEAD request
(GET when the server answers 405) through a bounded worker pool with a
per-probe timeout. Results are handed to the pure scoring step; a failed
probe only withholds the verified-image bonus.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from .. import constants
from ..models.subject import Subject, is_populated
from ..utils.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Outcome of probing one URL."""

    url: str
    reachable: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed_ms: float = 0.0


class ImageProbe:
    """Checks that poster URLs resolve."""

    def __init__(
        self,
        timeout: float = constants.IMAGE_PROBE_TIMEOUT_SECONDS,
        max_workers: int = constants.IMAGE_PROBE_WORKERS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            timeout: Per-probe timeout in seconds
            max_workers: Concurrent probes
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.timeout = timeout
        self.max_workers = max_workers
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
                headers={"User-Agent": "CatalogTrust-ImageProbe/1.0"},
            )
        return self._client

    def probe(self, url: str) -> ProbeResult:
        """Probe a single URL. Never raises for network failures."""
        start_time = time.time()
        try:
            client = self._get_client()
            response = client.head(url)
            if response.status_code == 405:
                response = client.get(url)
            return ProbeResult(
                url=url,
                reachable=response.status_code < 400,
                status_code=response.status_code,
                error=None if response.status_code < 400 else f"HTTP {response.status_code}",
                elapsed_ms=(time.time() - start_time) * 1000,
            )
        except httpx.TimeoutException:
            error = f"Timeout after {self.timeout}s"
        except httpx.HTTPError as e:
            error = f"{type(e).__name__}: {str(e)[:100]}"
        return ProbeResult(url=url, reachable=False, error=error, elapsed_ms=(time.time() - start_time) * 1000)

    def probe_subjects(self, subjects: list[Subject]) -> dict[str, bool]:
        """
        Probe the posters of a batch.

        Returns:
            subject_id -> reachable, for subjects that have a poster URL
        """
        targets = [s for s in subjects if is_populated(s.poster_url)]
        if not targets:
            return {}

        # One shared client, created before the workers start
        self._get_client()
        pool = WorkerPool(max_workers=self.max_workers, logger=logger, label=lambda s: s.label)
        results = pool.map(lambda s: self.probe(s.poster_url), targets, desc="Image probe")

        reachable: dict[str, bool] = {}
        for success, subject, result in results:
            if not success:
                reachable[subject.id] = False
                continue
            reachable[subject.id] = result.reachable
            if not result.reachable:
                logger.info(f"Poster unreachable for {subject.label}: {result.error}")
        return reachable

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
