"""
StackIt Backend — Voting Rules (pure functions)
================================================

What:  The vote-state → reputation table and the vote tally derivation.
Why:   Kept free of I/O so every transition can be tested exhaustively and
       the engine can never "double-apply" a delta: it asks for the NET delta
       between the old and new vote state and applies it in one step.
How:   A vote state is `VoteType.UPVOTE`, `VoteType.DOWNVOTE` or `None`
       (no vote). Its weight is the reputation it contributes to the author
       of the target; the delta of a transition is new weight − old weight.

Transition table (default constants +10 / -2):

    old \\ new │ none │ upvote │ downvote
    ──────────┼──────┼────────┼─────────
    none      │   0  │  +10   │   -2
    upvote    │ -10  │    0   │  -12
    downvote  │  +2  │  +12   │    0

Deltas depend only on the event, never on the author's current reputation,
so reversing an event always restores the exact previous score.
"""

import enum
from dataclasses import dataclass
from typing import Optional


class VoteType(str, enum.Enum):
    UPVOTE = "upvote"
    DOWNVOTE = "downvote"


class TargetType(str, enum.Enum):
    QUESTION = "question"
    ANSWER = "answer"


def vote_weight(
    vote_type: Optional[VoteType],
    upvote_delta: int,
    downvote_delta: int,
) -> int:
    """Reputation contributed to the target's author by a single vote state."""
    if vote_type is None:
        return 0
    if vote_type is VoteType.UPVOTE:
        return upvote_delta
    return downvote_delta


def reputation_delta(
    old: Optional[VoteType],
    new: Optional[VoteType],
    upvote_delta: int,
    downvote_delta: int,
) -> int:
    """
    Net reputation change for the target's author when a voter moves from
    `old` to `new`.

    >>> reputation_delta(VoteType.UPVOTE, VoteType.DOWNVOTE, 10, -2)
    -12
    """
    return vote_weight(new, upvote_delta, downvote_delta) - vote_weight(
        old, upvote_delta, downvote_delta
    )


@dataclass(frozen=True)
class VoteTally:
    """Sizes of a target's upvote and downvote sets."""

    upvotes: int = 0
    downvotes: int = 0

    @property
    def vote_count(self) -> int:
        return self.upvotes - self.downvotes
