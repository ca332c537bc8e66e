"""Exceptions raised by the rules oracle and the turn coordinator."""


class InvalidMove(ValueError):
    """A human move was rejected: wrong turn, finished game, bad square, or illegal pair."""


class IllegalMove(ValueError):
    """The rules oracle refused to apply a move in the current position."""
