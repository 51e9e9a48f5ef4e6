"""Provider adapters and the HTTP/JSON-RPC helpers they share."""

from .base import HttpClients, get_json, post_json
from .jsonrpc import JsonRpcClient

__all__ = ["HttpClients", "JsonRpcClient", "get_json", "post_json"]
