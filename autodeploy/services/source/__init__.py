"""
Source checkout services.
"""
from autodeploy.services.source.fetcher import UNKNOWN_REVISION, SourceFetcher

__all__ = [
    "SourceFetcher",
    "UNKNOWN_REVISION",
]
