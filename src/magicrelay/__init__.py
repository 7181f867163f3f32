"""magicrelay — real-time event relay for live performance.

Broadcast channels fan one-shot events out to every watching device,
paired sessions relay a spectator's drawing to the magician's screen.
"""

__version__ = "0.1.0"
