"""
Services package - SLP capability interface implementations.
"""

from slp_data.services.indexer import IndexerService
from slp_data.services.slpdb import SlpdbService


__all__ = [
    "IndexerService",
    "SlpdbService",
]
