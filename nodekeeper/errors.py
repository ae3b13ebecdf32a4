from __future__ import annotations


class NodeKeeperError(Exception):
    pass


class ConfigError(NodeKeeperError):
    """The local node declarations could not be read or parsed."""


class ClusterError(NodeKeeperError):
    pass


class TransportError(ClusterError):
    """Timeout, connection failure or non-2xx response."""


class DecodeError(ClusterError):
    """The cluster answered, but not with the expected JSON shape."""


class ExecutionError(NodeKeeperError):
    """A service restart command failed."""

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic


class QueryError(NodeKeeperError):
    """The process manager could not tell when a unit last became active."""

    NOT_FOUND = "not_found"
    PARSE_FAILED = "parse_failed"

    def __init__(self, message: str, kind: str = NOT_FOUND):
        super().__init__(message)
        self.kind = kind
