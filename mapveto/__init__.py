"""
Map Veto - Real-time map veto server for competitive matches.

Two teams alternately ban and pick maps (and choose starting sides) from a
shared pool, following a format script. The server provides:
- Session creation with per-role capability tokens
- Authoritative state transitions with undo and reset
- Optional turn timer and coin flip
- Real-time broadcast to every subscriber
- Persistent match history
"""

__version__ = "0.1.0"
