"""Match resolution shared by challenges and tournament matches."""

from .models import (
    CHALLENGE_LAYOUT,
    KNOCKOUT_MATCH_LAYOUT,
    LEAGUE_MATCH_LAYOUT,
    MatchLayout,
    MatchOutcome,
)
from .services import MatchService

__all__ = [
    "CHALLENGE_LAYOUT",
    "KNOCKOUT_MATCH_LAYOUT",
    "LEAGUE_MATCH_LAYOUT",
    "MatchLayout",
    "MatchOutcome",
    "MatchService",
]
