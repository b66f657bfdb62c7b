"""Errors raised by the pricing context.

Malformed input is reported with ``protean.exceptions.ValidationError``;
this module holds the errors that are not about the caller's input.
"""


class UpstreamUnavailable(Exception):
    """A collaborator lookup failed or came back incomplete.

    Raised before any computation starts, so no partial result is ever
    produced.
    """

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source} unavailable: {message}")
