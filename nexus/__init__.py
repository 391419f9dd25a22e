"""
Nexus - Chat and live voice sessions with an assistant.

A small session orchestration core: a conversation store for typed chat
threads and a voice session state machine that cycles through listening,
processing and speaking, with pluggable gateways and speech devices.
"""

__version__ = "1.0.0"
