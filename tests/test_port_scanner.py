#!/usr/bin/env python3
"""PortScanner tests: result sets, worker bounds and per-port error isolation"""

import socket
import threading
import time
import unittest
from unittest.mock import patch

from proxdial.discovery import PortScanner, check_port
from proxdial.proxy_core.exceptions import ConfigurationError, ConnectError, DialTimeoutError
from proxdial.proxy_core.models import ScanTarget

from tests.helpers import unused_port


def contiguous_ports():
    """Bind p and p+1 without listening (refused) and listen on p+2.

    Returns (first_port, sockets).
    """
    for _ in range(50):
        first = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        first.bind(('127.0.0.1', 0))
        port = first.getsockname()[1]
        sockets = [first]
        try:
            if port + 2 > 65535:
                raise OSError("range exhausted")
            for offset in (1, 2):
                extra = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
                sockets.append(extra)
                extra.bind(('127.0.0.1', port + offset))
        except OSError:
            for sock in sockets:
                sock.close()
            continue
        sockets[2].listen(8)
        return port, sockets
    raise RuntimeError("could not reserve three consecutive ports")


class TestPortScanner(unittest.TestCase):
    """Test scans against local ports"""

    def test_only_listening_port_is_open(self):
        port, sockets = contiguous_ports()
        try:
            scanner = PortScanner(ScanTarget("127.0.0.1", port, port + 2), timeout=1)
            results = scanner.scan()
        finally:
            for sock in sockets:
                sock.close()

        self.assertEqual(len(results), 3)
        ordered = scanner.sorted_results()
        self.assertEqual([result.port for result in ordered], [port, port + 1, port + 2])
        self.assertEqual([result.open for result in ordered], [False, False, True])
        self.assertEqual(scanner.open_ports(), [port + 2])
        for result in ordered[:2]:
            with self.subTest(port=result.port):
                self.assertIsInstance(result.error, ConnectError)
        self.assertIsNone(ordered[2].error)
        self.assertEqual(scanner.scan_stats, {'scanned': 3, 'open': 1, 'closed': 2, 'timeout': 0})

    def test_single_closed_port(self):
        port = unused_port()
        scanner = PortScanner(ScanTarget("127.0.0.1", port, port))

        results = scanner.scan()

        self.assertEqual(scanner.workers, 1)
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].port, port)
        self.assertFalse(results[0].open)
        self.assertIsNotNone(results[0].error)
        self.assertGreaterEqual(results[0].latency, 0)

    def test_unreachable_single_port_returns_within_timeout(self):
        # TEST-NET-1 is never routed; the connect either times out or fails fast
        scanner = PortScanner(ScanTarget("192.0.2.1", 9, 9), timeout=0.5)

        started = time.monotonic()
        results = scanner.scan()
        elapsed = time.monotonic() - started

        self.assertLess(elapsed, 2.0)
        self.assertEqual(len(results), 1)
        self.assertFalse(results[0].open)
        self.assertIsInstance(results[0].error, ConnectError)

    def test_unencodable_host_gives_closed_results(self):
        scanner = PortScanner(ScanTarget("a" * 64 + ".example", 80, 81), timeout=1)

        results = scanner.scan()

        self.assertEqual(sorted(result.port for result in results), [80, 81])
        for result in results:
            with self.subTest(port=result.port):
                self.assertFalse(result.open)
                self.assertIsInstance(result.error, ConnectError)
        self.assertEqual(scanner.scan_stats['closed'], 2)

    def test_check_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(('127.0.0.1', 0))
            server.listen(1)
            self.assertTrue(check_port("127.0.0.1", server.getsockname()[1], timeout=1))

        self.assertFalse(check_port("127.0.0.1", unused_port(), timeout=1))

    def test_rescan_resets_results(self):
        port = unused_port()
        scanner = PortScanner(ScanTarget("127.0.0.1", port, port), timeout=1)

        scanner.scan()
        scanner.scan()

        self.assertEqual(len(scanner.results), 1)
        self.assertEqual(scanner.scan_stats['scanned'], 1)


class TestPortScannerWorkers(unittest.TestCase):
    """Test worker sizing and concurrency with a patched connector"""

    def test_worker_defaults(self):
        test_cases = [
            (ScanTarget("127.0.0.1", 80, 80), None, 1),
            (ScanTarget("127.0.0.1", 1, 5), None, 5),
            (ScanTarget("127.0.0.1", 1, 1000), None, 100),
            (ScanTarget("127.0.0.1", 1, 1000), 8, 8),
            (ScanTarget("127.0.0.1", 1, 3), 50, 3),
        ]

        for target, workers, expected in test_cases:
            with self.subTest(ports=target.port_count, workers=workers):
                self.assertEqual(PortScanner(target, workers=workers).workers, expected)

    def test_default_timeout(self):
        self.assertEqual(PortScanner(ScanTarget("127.0.0.1", 80, 80)).timeout, 2.0)
        self.assertEqual(PortScanner(ScanTarget("127.0.0.1", 80, 80), timeout=0.5).timeout, 0.5)

    def test_invalid_workers(self):
        for workers in (0, -3):
            with self.subTest(workers=workers):
                with self.assertRaises(ConfigurationError):
                    PortScanner(ScanTarget("127.0.0.1", 1, 10), workers=workers)

    def test_concurrency_is_bounded(self):
        lock = threading.Lock()
        state = {'active': 0, 'peak': 0}

        def fake_connect(host, port, timeout):
            with lock:
                state['active'] += 1
                state['peak'] = max(state['peak'], state['active'])
            time.sleep(0.01)
            with lock:
                state['active'] -= 1
            raise ConnectError("refused", f"{host}:{port}")

        with patch('proxdial.discovery.port_scanner.open_tcp_connection', side_effect=fake_connect):
            scanner = PortScanner(ScanTarget("127.0.0.1", 1000, 1039), workers=4)
            results = scanner.scan()

        self.assertEqual(len(results), 40)
        self.assertEqual(sorted(result.port for result in results), list(range(1000, 1040)))
        self.assertLessEqual(state['peak'], 4)

    def test_timeouts_are_counted(self):
        def fake_connect(host, port, timeout):
            if port % 2:
                raise DialTimeoutError("timed out", f"{host}:{port}", timeout)
            raise ConnectError("refused", f"{host}:{port}")

        with patch('proxdial.discovery.port_scanner.open_tcp_connection', side_effect=fake_connect):
            scanner = PortScanner(ScanTarget("127.0.0.1", 10, 19), workers=3)
            scanner.scan()

        self.assertEqual(scanner.scan_stats, {'scanned': 10, 'open': 0, 'closed': 5, 'timeout': 5})

    def test_unexpected_errors_are_closed_results(self):
        errors = [OSError("no buffer space"), UnicodeError("label too long")]

        with patch('proxdial.discovery.port_scanner.open_tcp_connection', side_effect=errors):
            scanner = PortScanner(ScanTarget("127.0.0.1", 1, 2), workers=1)
            results = scanner.scan()

        self.assertEqual(len(results), 2)
        self.assertEqual([result.error for result in results], errors)
        self.assertEqual(scanner.scan_stats['closed'], 2)


if __name__ == '__main__':
    unittest.main()
