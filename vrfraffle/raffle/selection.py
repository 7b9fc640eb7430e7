"""Helpers for mapping an oracle random word onto a ticket index."""

from __future__ import annotations


def select_winner_index(random_word: int, player_count: int) -> int:
    """Reduce ``random_word`` onto ``range(player_count)``.

    Parameters
    ----------
    random_word : int
        Unsigned value delivered by the randomness oracle.
    player_count : int
        Number of tickets in the round being resolved.

    Returns
    -------
    int
        ``random_word % player_count``.

    Notes
    -----
    Plain modulo reduction favours the lowest ``2**256 % player_count``
    indexes by one extra preimage each. For a 256-bit word and any realistic
    ticket count that skew is below ``player_count / 2**256`` and is
    accepted rather than corrected by rejection sampling, which would need
    additional oracle words.
    """

    if isinstance(random_word, bool) or not isinstance(random_word, int):
        raise TypeError("random_word must be an integer")
    if random_word < 0:
        raise ValueError("random_word must be non-negative")
    if player_count <= 0:
        raise ValueError("Cannot select a winner without players")
    return random_word % player_count


__all__ = ["select_winner_index"]
