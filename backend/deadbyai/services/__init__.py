"""Game domain services: rooms, the round state machine, timers and judging.

This package contains the game logic that the socket gateway and HTTP
routes call into, keeping transport concerns separated from core game
mechanics.
"""
