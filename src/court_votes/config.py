"""Configuration constants for the Supreme Court vote analysis."""

SCDB_BASE_URL = "http://scdb.wustl.edu/_brickFiles"

REQUEST_TIMEOUT = 60  # seconds
MAX_RETRIES = 3
RETRY_DELAY = 5  # seconds between retries
CHUNK_SIZE = 1 << 16  # bytes per streamed download chunk

USER_AGENT = (
    "CourtVotes/0.1 "
    "(Research project; polarization analysis of Supreme Court Database releases)"
)

# SCDB justice-centered column -> canonical store column
SCDB_COLUMNS = {
    "caseId": "case_id",
    "term": "period",
    "justice": "voter_id",
    "justiceName": "voter_name",
    "vote": "vote_code",
    "direction": "direction",
    "majority": "is_majority",
    "majVotes": "maj_votes",
    "minVotes": "min_votes",
}

# dateDecision in the SCDB CSV releases, e.g. "11/18/1946"
DATE_FORMAT = "%m/%d/%Y"

# direction: 1 = conservative, 2 = liberal; 3 (unspecifiable) and blanks are missing
DIRECTION_CODES = (1, 2)

# majority: 1 = dissent, 2 = majority
MAJORITY_CODES = {1: False, 2: True}

# vote: 1 = voted with majority, 2 = dissent, 3 = regular concurrence,
# 4 = special concurrence, 5-8 = jurisdictional dissents and splits
DISSENT_CODES = ("2",)
CONCURRENCE_CODES = ("3", "4")

DIRECTION_MIDPOINT = 1.5
DIRECTION_HALF_RANGE = 0.5
