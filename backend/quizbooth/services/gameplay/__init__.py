"""Gameplay session services: storage, scoring, timers and the completion lock.

This package holds the session engine consumed by HTTP routes and socket
handlers. Nothing in here knows about requests; the hosting layer passes
in the stores, scheduler and feedback service it wants the engine to use.
"""
