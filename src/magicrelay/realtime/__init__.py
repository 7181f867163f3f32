"""Real-time transports — SSE for channels, WebSocket for paired sessions.

Learn: Both transports wrap a connection in a queue-backed handle:
1. The relay engine calls handle.send() synchronously (put_nowait)
2. A per-connection writer drains the queue onto the network

A full or closed queue is a write failure, which is how the engine
notices dead or stalled connections without ever awaiting network I/O.
"""
