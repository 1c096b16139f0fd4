"""
faucet-agent - forwards faucet controller events to Prometheus.

Reads the faucet event socket, turns recognised events into metric samples
and pushes them to a Prometheus remote write endpoint.
"""

__version__ = "0.1.0"

BIN_NAME = "faucet_agent"
