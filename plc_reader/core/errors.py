class ReaderError(Exception):
    """Base class for acquisition errors."""


class ServerConnectionError(ReaderError):
    """No session could be established with the OPC UA server."""


class SessionError(ReaderError):
    """A read or subscribe was attempted against a missing or dead session."""


class SubscriptionTerminated(ReaderError):
    """The subscription has ended and can no longer be used."""
