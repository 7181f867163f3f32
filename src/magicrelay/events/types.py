"""Relay signal and frame constants.

Learn: Centralizing the control messages as constants prevents typos and
makes it easy to discover everything the relay itself ever says on a
connection. Application payloads (strokes, drawings) are opaque and are
never listed here.
"""

# ─── Paired session control messages ─────────────────────

READY = "ready"
PEER_READY = "peer-ready"
PEER_DISCONNECTED = "peer-disconnected"

# ─── Channel stream frames ───────────────────────────────

HEARTBEAT_FRAME = ": ping\n\n"

# ─── HTTP error tags ─────────────────────────────────────

INVALID_SYMBOL = "invalid_symbol"
UNKNOWN_CHANNEL = "unknown_channel"

# ─── WebSocket close codes ───────────────────────────────

WS_CLOSE_SUPERSEDED = 4000
WS_CLOSE_BAD_ROLE = 4001
WS_CLOSE_UNKNOWN_SESSION = 4004
