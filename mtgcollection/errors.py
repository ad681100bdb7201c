# mtgcollection/errors.py
"""Errors raised by backend commands.

Every failure a command can report is a ``CommandError``; the transport layer
turns it into ``{"error": message}`` with ``status_code``.
"""


class CommandError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(CommandError):
    status_code = 400


class NotFoundError(CommandError):
    status_code = 404


class UnknownCommandError(NotFoundError):
    def __init__(self, command: str):
        super().__init__(f"Unknown command: {command}")
        self.command = command


class ScryfallError(CommandError):
    """Scryfall was unreachable or answered with an unexpected status."""
    status_code = 502
