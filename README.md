# voidio

Networking building blocks for Python:

- `voidio.udp` — a multi-threaded UDP server (`UdpServer`) whose workers each
  own a socket and call your datagram handler, plus a load generator
  (`UdpFloodTest`) for measuring throughput.
- `voidio.quic` — QUIC v1 pieces: Initial-packet key derivation and header
  protection removal, packet processing (`exec_quic_packet`), connection,
  stream, message and datagram objects, and a `QuicServer` built on the UDP
  server.
- `voidio.elf` — a small reader for 64-bit ELF objects and their sections.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## A UDP server

```python
from voidio.udp.udp_server import UdpServer

server = UdpServer(("127.0.0.1", 42070))

def setup(ctx):
    ctx.on_datagram(lambda src, data: ctx.send(data, src))
    ctx.run()

server.thread(setup)
server.debug(True)
server.start(2)
assert server.is_running()

server.stop()
```

Every worker builds an `UdpServerThreadContext`, passes it to the function
given to `thread()`, and that function registers a datagram handler and
calls `run()`, which receives until the server is stopped.

## Load testing

```python
server.floodtest(42070).with_threads(4).with_payload_size(1200).with_duration(5).with_logs(True).start()
```

## A QUIC server

```python
from voidio.quic.quic_server import QuicServer, DispatchMode

def on_connection(event):
    print("new connection from", event.connection.address)

server = QuicServer(("127.0.0.1", 4433))
server.set_dispatch_mode(DispatchMode.DIRECT)
server.on_connection(on_connection)
server.start(4)
```

## QUIC primitives

```python
from voidio.quic.utils import encode_varint
from voidio.quic.crypto import read_varint

assert read_varint(encode_varint(494878333)) == (494878333, 4)
```

## ELF sections

```python
from voidio.elf import Elf

elf = Elf.from_file("program.o")
text = elf.section_data_by_name(".text")
```