"""
Port Discovery Engine
=====================

Multi-threaded TCP connect scanning over a contiguous port range. Ports are
queued up front and a fixed pool of workers pulls from the queue until it is
drained, so at most ``workers`` connection attempts are in flight.
"""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from ..proxy_core.constants import (
    DEFAULT_SCAN_TIMEOUT, DEFAULT_SCAN_WORKERS, SINGLE_PORT_WORKERS
)
from ..proxy_core.exceptions import ConfigurationError, DialTimeoutError, ProxDialError
from ..proxy_core.models import ScanResult, ScanTarget
from ..proxy_engine.base import close_quietly, open_tcp_connection


class PortScanner:
    """Connect scanner producing exactly one ScanResult per port"""

    def __init__(self, target: ScanTarget, timeout: Optional[float] = None,
                 workers: Optional[int] = None,
                 logger: Optional[logging.Logger] = None):
        if workers is not None and workers <= 0:
            raise ConfigurationError("scan workers must be positive",
                                     "INVALID_WORKERS", workers)
        self.target = target
        self.timeout = timeout or DEFAULT_SCAN_TIMEOUT
        if workers is None:
            workers = SINGLE_PORT_WORKERS if target.is_single_port else DEFAULT_SCAN_WORKERS
        self.workers = min(workers, target.port_count)
        self.logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        self.results: List[ScanResult] = []
        self.scan_stats: Dict[str, int] = {
            'scanned': 0,
            'open': 0,
            'closed': 0,
            'timeout': 0
        }
        self._lock = threading.Lock()

    def scan(self) -> List[ScanResult]:
        """Probe every port of the target; result order is not guaranteed"""
        self._reset()
        ports: "queue.Queue[int]" = queue.Queue()
        for port in self.target.ports:
            ports.put(port)

        self.logger.debug(
            f"Scanning {self.target.host} ports {self.target.start_port}-{self.target.end_port} "
            f"with {self.workers} workers (timeout {self.timeout}s)"
        )
        start_time = time.time()

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(self._worker, ports) for _ in range(self.workers)]
            for future in futures:
                future.result()

        self.logger.debug(
            f"Scan finished in {time.time() - start_time:.2f}s: "
            f"{self.scan_stats['open']} open of {self.scan_stats['scanned']}"
        )
        return list(self.results)

    def sorted_results(self) -> List[ScanResult]:
        """Results of the last scan ordered by port"""
        with self._lock:
            return sorted(self.results, key=lambda result: result.port)

    def open_ports(self) -> List[int]:
        return [result.port for result in self.sorted_results() if result.open]

    def _reset(self) -> None:
        with self._lock:
            self.results = []
            for key in self.scan_stats:
                self.scan_stats[key] = 0

    def _worker(self, ports: "queue.Queue[int]") -> None:
        while True:
            try:
                port = ports.get_nowait()
            except queue.Empty:
                return
            self._record(self.probe(port))

    def probe(self, port: int) -> ScanResult:
        """Single bounded connect attempt; failures become closed results"""
        start_time = time.time()
        try:
            sock = open_tcp_connection(self.target.host, port, self.timeout)
        except (ProxDialError, OSError, ValueError) as e:
            return ScanResult(port=port, open=False, latency=time.time() - start_time, error=e)

        latency = time.time() - start_time
        close_quietly(sock)
        return ScanResult(port=port, open=True, latency=latency)

    def _record(self, result: ScanResult) -> None:
        with self._lock:
            self.results.append(result)
            self.scan_stats['scanned'] += 1
            if result.open:
                self.scan_stats['open'] += 1
            elif isinstance(result.error, DialTimeoutError):
                self.scan_stats['timeout'] += 1
            else:
                self.scan_stats['closed'] += 1

        if result.open:
            self.logger.debug(f"Port {result.port} open ({result.latency_ms:.1f}ms)")


def check_port(host: str, port: int, timeout: Optional[float] = None) -> bool:
    """Convenience single-port check"""
    scanner = PortScanner(ScanTarget(host, port, port), timeout=timeout)
    return scanner.scan()[0].open
