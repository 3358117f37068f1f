"""Load generator that floods a running UDP server with datagrams."""

from __future__ import annotations

import ipaddress
import itertools
import socket
import threading
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Union

from .udp_worker import _AtomicCounter

if TYPE_CHECKING:
    from .udp_server import UdpServer

DEFAULT_TOTAL_PACKETS = 100_000_000
BATCH_SIZE = 1024


def _batches(items: Iterable[bytes], size: int) -> Iterator[list[bytes]]:
    iterator = iter(items)
    while True:
        batch = list(itertools.islice(iterator, size))
        if not batch:
            return
        yield batch


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class UdpFloodTest:
    """Sends many datagrams from several threads while watching a server's packet count."""

    def __init__(
        self,
        server: "UdpServer",
        port: int,
        total_packets: int = DEFAULT_TOTAL_PACKETS,
    ) -> None:
        self.target_server = server
        self.port = port
        self.total_packets = total_packets
        self.thread_count = 1
        self.payload_size = 64
        self.specific_payload: Optional[bytes] = None
        self.duration = 5.0
        self.logging = False
        self._sent = _AtomicCounter()

    def with_threads(self, thread_count: int) -> "UdpFloodTest":
        """Use ``thread_count`` sending threads."""
        if thread_count < 1:
            raise ValueError("thread count must be at least 1")
        self.thread_count = thread_count
        return self

    def with_payload_size(self, payload_size: int) -> "UdpFloodTest":
        """Send zero-filled payloads of ``payload_size`` bytes (0 sends numbered greetings)."""
        if payload_size < 0:
            raise ValueError("payload size must not be negative")
        self.payload_size = payload_size
        return self

    def with_duration(self, duration: Union[float, timedelta]) -> "UdpFloodTest":
        """Watch the server for ``duration`` seconds."""
        if isinstance(duration, timedelta):
            duration = duration.total_seconds()
        if duration < 0:
            raise ValueError("duration must not be negative")
        self.duration = float(duration)
        return self

    def with_logs(self, logs: bool) -> "UdpFloodTest":
        """Print the server's packet count while the test runs."""
        self.logging = logs
        return self

    def with_payload(self, payload) -> "UdpFloodTest":
        """Send this exact payload in every datagram."""
        self.specific_payload = bytes(payload)
        return self

    @property
    def packets_sent(self) -> int:
        """Datagrams sent by the most recent run."""
        return self._sent.load()

    def start(self) -> None:
        """Run the flood until the duration has passed or the server stops."""
        per_thread = self.total_packets // self.thread_count
        payload_len = (
            len(self.specific_payload) if self.specific_payload is not None else self.payload_size
        )
        print(
            f"[UdpFloodTest] Starting flood test with {self.thread_count} threads, "
            f"{payload_len} payload size, {int(self.duration)} duration"
        )
        host = str(self.target_server.address[0])
        try:
            ip = ipaddress.IPv4Address(host)
        except ValueError:
            raise ValueError(f"Invalid IP address: {host}") from None
        target = (str(ip), self.port)

        self._sent.store(0)
        stop = threading.Event()
        senders = [
            threading.Thread(
                target=self._send_range,
                args=(thread_id, thread_id * per_thread, per_thread, target, stop),
                name=f"UdpFloodTest->Thread-{thread_id}",
                daemon=True,
            )
            for thread_id in range(self.thread_count)
        ]
        for sender in senders:
            sender.start()

        server = self.target_server
        try:
            while True:
                time.sleep(0.01)
                if server.is_running():
                    break
            began = time.monotonic()
            while server.is_running():
                elapsed = time.monotonic() - began
                if elapsed >= self.duration:
                    break
                if self.logging:
                    print(
                        f"[UdpFloodTest] {_now_ms()}: Target Server received "
                        f"{server.total_processed_packets.load()} packets"
                    )
                time.sleep(min(1.0, self.duration - elapsed))
        finally:
            stop.set()
            for sender in senders:
                sender.join()

        if self.logging:
            print(
                f"[UdpFloodTest] {_now_ms()}: Flood test completed. Total packets server "
                f"received: {server.total_processed_packets.load()}"
            )

    def _send_range(
        self,
        thread_id: int,
        first: int,
        count: int,
        target: tuple[str, int],
        stop: threading.Event,
    ) -> None:
        print(f"[UdpFloodTest->Thread-{thread_id}] Started")
        payload = (
            self.specific_payload if self.specific_payload is not None else bytes(self.payload_size)
        )
        if payload:
            messages: Iterable[bytes] = itertools.repeat(payload, count)
        else:
            messages = (f"Hello, world! {i}".encode() for i in range(first, first + count))
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            for batch in _batches(messages, BATCH_SIZE):
                # A fixed payload is only ever sent in whole batches.
                if payload and len(batch) < BATCH_SIZE:
                    return
                if stop.is_set():
                    return
                for message in batch:
                    sock.sendto(message, target)
                self._sent.add(len(batch))