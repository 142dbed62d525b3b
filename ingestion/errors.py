"""Exceptions raised while turning a source into readable text."""


class ExtractionError(Exception):
    """Raised when a source cannot be converted to usable text.

    The message is shown to the reader as-is, so it always suggests
    what to try next.
    """
    pass


class TransportError(Exception):
    """Raised when a single fetch attempt fails.

    Retried across the fallback transports before being escalated
    to ExtractionError.
    """

    def __init__(self, transport: str, message: str, retryable: bool = True):
        super().__init__(f"{transport}: {message}")
        self.transport = transport
        self.retryable = retryable
