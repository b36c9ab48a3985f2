"""Remote endpoint adapter module."""

from .client import HttpRemote, RemoteAdapter, RemoteUnavailable
from .models import MalformedRemoteItem, item_from_record

__all__ = [
    "HttpRemote",
    "RemoteAdapter",
    "RemoteUnavailable",
    "MalformedRemoteItem",
    "item_from_record",
]
