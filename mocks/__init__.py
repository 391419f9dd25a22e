"""Deterministic stand-ins for the gateway and speech devices."""
