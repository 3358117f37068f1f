"""A multi-threaded UDP server: one bound socket and receive loop per worker thread."""

from __future__ import annotations

import queue
import socket
import threading
import time
from typing import Callable, Optional, Union

from .flood import UdpFloodTest
from .udp_worker import UdpServerThreadContext, _AtomicCounter

WorkerSetupHandler = Callable[[UdpServerThreadContext], None]

RECV_SOCKET_BUFFER = 32768
RECV_TIMEOUT = 0.5
_STATS_INTERVAL = 0.25


def _parse_address(address: Union[str, tuple]) -> tuple[str, int]:
    if isinstance(address, str):
        host, sep, port = address.rpartition(":")
        if not sep or not host:
            raise ValueError(f"address {address!r} has no port")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        try:
            number = int(port)
        except ValueError:
            raise ValueError(f"invalid port in {address!r}") from None
    else:
        host, number = address[0], int(address[1])
    if not 0 <= number <= 65535:
        raise ValueError(f"invalid port {number}")
    return str(host), number


def _format_address(address: tuple) -> str:
    host, port = address[0], address[1]
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


class UdpServer:
    """Runs a setup handler on each worker thread, each with its own bound socket."""

    def __init__(self, address) -> None:
        self.address = _parse_address(address)
        self.debug_mode = False
        self.processed_packets: list[_AtomicCounter] = []
        self.total_processed_packets = _AtomicCounter()
        self._running = threading.Event()
        self._threads: list[threading.Thread] = []
        self._thread_handler: Optional[WorkerSetupHandler] = None

    def _log(self, message: str) -> None:
        if self.debug_mode:
            print(message)

    def start(self, num_workers: int) -> None:
        """Start ``num_workers`` workers one after another, then mark the server running."""
        handler = self._thread_handler
        if handler is None:
            raise RuntimeError("No worker handler set")
        if num_workers < 1:
            raise ValueError("at least one worker is needed")
        self._log(f"[UdpServer] Starting at {_format_address(self.address)}")
        ready: queue.Queue = queue.Queue()
        debug = self.debug_mode
        for worker_id in range(num_workers):
            if worker_id > 0:
                self._await_ready(ready)
            counter = _AtomicCounter()
            name = f"UdpServer->Thread-{worker_id}"
            thread = threading.Thread(
                target=self._worker_main,
                args=(worker_id, name, counter, ready, handler, debug),
                name=name,
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
            self.processed_packets.append(counter)
        self._await_ready(ready)
        self._running.set()
        threading.Thread(target=self._collect_stats, name="UdpServer->Stats", daemon=True).start()

    @staticmethod
    def _await_ready(ready: queue.Queue) -> None:
        item = ready.get()
        if isinstance(item, BaseException):
            raise item

    def _open_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.address[0] else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, RECV_SOCKET_BUFFER)
            sock.settimeout(RECV_TIMEOUT)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(self.address)
        except BaseException:
            sock.close()
            raise
        return sock

    def _worker_main(
        self,
        worker_id: int,
        name: str,
        counter: _AtomicCounter,
        ready: queue.Queue,
        handler: WorkerSetupHandler,
        debug: bool,
    ) -> None:
        ctx: Optional[UdpServerThreadContext] = None
        try:
            with self._open_socket() as sock:
                ctx = UdpServerThreadContext(sock, self.address, ready)
                ctx.id = worker_id
                ctx.name = name
                ctx.processed_counter = counter
                ctx.server_running = self._running
                ctx.debug_mode = debug
                if debug:
                    print(f"[{name}] Started")
                handler(ctx)
        except Exception as exc:
            if ctx is None or not ctx.is_ready:
                ready.put(exc)
                return
            raise
        # A handler that never entered its receive loop still must not stall start().
        if not ctx.is_ready:
            ready.put(None)

    def _update_total(self) -> None:
        self.total_processed_packets.store(sum(c.load() for c in self.processed_packets))

    def _collect_stats(self) -> None:
        while self._running.is_set():
            time.sleep(_STATS_INTERVAL)
            self._update_total()

    def is_running(self) -> bool:
        """Whether the server has started and not been stopped."""
        return self._running.is_set()

    def thread(self, handler: WorkerSetupHandler) -> "UdpServer":
        """Set the handler each worker thread calls with its context."""
        self._thread_handler = handler
        return self

    def stop(self) -> None:
        """Stop the server and wait for every worker to finish."""
        self._running.clear()
        for thread in self._threads:
            thread.join()
        self._threads.clear()
        self._update_total()

    def debug(self, enabled: bool) -> "UdpServer":
        """Turn diagnostic printing on or off."""
        self.debug_mode = enabled
        return self

    def wait(self, interval: Optional[float] = None) -> None:
        """Block while the server is running, checking every ``interval`` seconds."""
        step = 0.01 if interval is None else interval
        while self._running.is_set():
            time.sleep(step)

    def worker_count(self) -> int:
        """The number of worker threads started and not yet stopped."""
        return len(self._threads)

    def floodtest(self, local_port: int) -> UdpFloodTest:
        """A flood test aimed at this server's host on ``local_port``."""
        return UdpFloodTest(self, local_port)