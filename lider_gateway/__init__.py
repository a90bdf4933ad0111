"""
LIDER Gateway

Authentication gateway that relays device-registration records between the
LIDER and ETA directories through an in-memory retrying job queue.
"""

__version__ = "1.0.0"
