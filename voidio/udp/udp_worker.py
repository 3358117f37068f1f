"""The per-thread context of a UDP server worker and its receive loops."""

from __future__ import annotations

import errno
import os
import select
import socket
import threading
from typing import Callable, Optional

DatagramHandler = Callable[[tuple, bytearray], None]

RECV_BUFFER_SIZE = 2048
BATCH_CAPACITY = 8
_POP_FLUSH_EVERY = 100_000
_BATCH_FLUSH_EVERY = 10_000
_BATCHED = os.name == "posix"


class _AtomicCounter:
    """An integer shared between threads."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def add(self, amount: int) -> int:
        with self._lock:
            self._value += amount
            return self._value

    def load(self) -> int:
        with self._lock:
            return self._value

    def store(self, value: int) -> None:
        with self._lock:
            self._value = value


class UdpServerThreadContext:
    """A worker's socket, its datagram handler and its share of the packet count."""

    def __init__(self, sock: socket.socket, server_address, ready_signal) -> None:
        self.id = 0
        self.name = "UdpServerThreadContext-X"
        self.server_address = server_address
        self.socket = sock
        self.server_running = threading.Event()
        self.debug_mode = False
        self.processed_counter = _AtomicCounter()
        self.datagram_handler: Optional[DatagramHandler] = None
        self.kernel_mode = False
        self.ready_signal = ready_signal
        self.is_ready = False
        self._pending = 0

    def _log(self, message: str) -> None:
        if self.debug_mode:
            print(message)

    def _flush(self) -> None:
        self.processed_counter.add(self._pending)
        self._pending = 0

    def _count(self, amount: int, flush_every: int) -> None:
        self._pending += amount
        if self._pending % flush_every == 0:
            self._flush()

    def pop(self, bufsize: int = RECV_BUFFER_SIZE) -> tuple[bytes, tuple]:
        """Receive one datagram; returns its payload and sender address."""
        if self._pending % _POP_FLUSH_EVERY == 0:
            self._flush()
        data, address = self.socket.recvfrom(bufsize)
        return data, address

    def send(self, data, address) -> int:
        """Send ``data`` to ``address``; returns the number of bytes sent."""
        return self.socket.sendto(bytes(data), address)

    def on_datagram(self, handler: DatagramHandler) -> DatagramHandler:
        """Register the callback called with (sender address, payload) per datagram."""
        self.datagram_handler = handler
        return handler

    def make_ready(self) -> None:
        """Tell the server this worker is ready, then wait until the server runs."""
        self.ready_signal.put(None)
        self.is_ready = True
        self.server_running.wait()

    def run(self) -> None:
        """Receive datagrams and hand them to the handler until the server stops."""
        if self.kernel_mode:
            raise OSError(
                errno.EOPNOTSUPP,
                "Kernel support is currently only supported on Unix systems (XDP mode)",
            )
        handler = self.datagram_handler
        if handler is None:
            raise RuntimeError("No Datagram handler set for UdpServerThreadContext")
        self.datagram_handler = None
        if _BATCHED:
            self._batch_loop(handler)
        else:
            self._pop_loop(handler)

    def _pop_loop(self, handler: DatagramHandler) -> None:
        self.make_ready()
        try:
            while self.server_running.is_set():
                try:
                    data, address = self.socket.recvfrom(RECV_BUFFER_SIZE)
                except (socket.timeout, BlockingIOError, InterruptedError):
                    continue
                except OSError as exc:
                    self._log(f"Error receiving data: {exc}")
                    break
                handler(address, bytearray(data))
                self._count(1, _POP_FLUSH_EVERY)
        finally:
            self._flush()

    def _receive_batch(self) -> list[tuple[bytes, tuple]]:
        batch = [self.socket.recvfrom(RECV_BUFFER_SIZE)]
        while len(batch) < BATCH_CAPACITY:
            readable, _, _ = select.select([self.socket], [], [], 0)
            if not readable:
                break
            batch.append(self.socket.recvfrom(RECV_BUFFER_SIZE))
        return batch

    def _batch_loop(self, handler: DatagramHandler) -> None:
        self.make_ready()
        try:
            while self.server_running.is_set():
                try:
                    batch = self._receive_batch()
                except (socket.timeout, BlockingIOError, InterruptedError):
                    continue
                except OSError as exc:
                    self._log(f"Error receiving data: {exc}")
                    break
                for data, address in batch:
                    handler(address, bytearray(data))
                self._count(len(batch), _BATCH_FLUSH_EVERY)
        finally:
            self._flush()