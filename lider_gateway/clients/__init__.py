"""
Clients module.
Contains the HTTP relay to the LIDER and ETA directories.
"""

from lider_gateway.clients.relay import RelayClient

__all__ = ["RelayClient"]
