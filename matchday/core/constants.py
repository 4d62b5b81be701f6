"""Global constants for the matchday application."""

# Collection names
CHALLENGES_COLLECTION = "challenges"
TOURNAMENTS_COLLECTION = "tournaments"
MATCHES_SUBCOLLECTION = "matches"

# Invite codes
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 4
CHALLENGE_CODE_PREFIX = "1V1-"
TOURNAMENT_CODE_PREFIX = "TRN-"
INVITE_CODE_MAX_ATTEMPTS = 5

# Entity identifiers
ENTITY_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
ENTITY_ID_LENGTH = 20

# Deadlines (hours)
CHALLENGE_DEADLINE_HOURS = 24
CHALLENGE_LINK_DEADLINE_HOURS = 72
DEFAULT_MATCH_DEADLINE_HOURS = 24

# Transactions
TRANSACTION_MAX_ATTEMPTS = 5

# Challenge statuses
CHALLENGE_PENDING = "pending"
CHALLENGE_ACCEPTED = "accepted"
CHALLENGE_IN_PROGRESS = "in_progress"
CHALLENGE_COMPLETED = "completed"
CHALLENGE_DECLINED = "declined"
CHALLENGE_EXPIRED = "expired"
CHALLENGE_OPEN_STATUSES = (CHALLENGE_PENDING, CHALLENGE_ACCEPTED, CHALLENGE_IN_PROGRESS)

# Tournament statuses and types
TOURNAMENT_PENDING = "pending"
TOURNAMENT_ACTIVE = "active"
TOURNAMENT_COMPLETED = "completed"
TOURNAMENT_CANCELLED = "cancelled"
KNOCKOUT = "knockout"
LEAGUE = "league"
KNOCKOUT_SIZES = (4, 8, 16, 32)
LEAGUE_MIN_PLAYERS = 3

# Tournament match statuses
MATCH_PENDING = "pending"
MATCH_IN_PROGRESS = "in_progress"
MATCH_COMPLETED = "completed"
MATCH_PENALTY = "penalty"
MATCH_FORFEIT = "forfeit"
MATCH_EXPIRED = "expired"
MATCH_OPEN_STATUSES = (MATCH_PENDING, MATCH_IN_PROGRESS, MATCH_PENALTY)
MATCH_TERMINAL_STATUSES = (MATCH_COMPLETED, MATCH_FORFEIT, MATCH_EXPIRED)

# Penalty shootouts
PENALTY_ROUNDS = 5
PENALTY_FIRST_RECORDED = "first_recorded"
PENALTY_SUDDEN_DEATH = "sudden_death"
PENALTY_TIE_POLICIES = (PENALTY_FIRST_RECORDED, PENALTY_SUDDEN_DEATH)

# League points
POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0

# Listing
PUBLIC_TOURNAMENT_LIMIT = 20
