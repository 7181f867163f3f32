"""Relay error taxonomy.

Every error is scoped to the channel, session, or subscriber it touches;
none of them is fatal to the process.
"""


class RelayError(Exception):
    pass


class InvalidSymbolError(RelayError):
    """Producer sent a kind outside the channel's symbol set."""

    def __init__(self, channel: str, kind, valid: list[str]):
        self.channel = channel
        self.kind = kind
        self.valid = valid
        super().__init__(f"Invalid kind {kind!r} for channel {channel!r}")


class SubscriberWriteError(RelayError):
    """A connection handle could not accept another frame."""


class MalformedMessageError(RelayError):
    """A session payload was not a JSON object with a string type."""


class UnknownChannelError(RelayError):
    pass


class UnknownSessionError(RelayError):
    pass
