"""Court Votes - pairwise agreement and polarization analysis of Supreme Court voting records."""

__version__ = "0.1.0"

from court_votes.errors import InsufficientDataError as InsufficientDataError
from court_votes.errors import InvalidKError as InvalidKError
from court_votes.errors import InvalidParameterError as InvalidParameterError
from court_votes.errors import NoDataError as NoDataError
from court_votes.errors import SchemaError as SchemaError
from court_votes.models import VoteRecord as VoteRecord
from court_votes.records import VoteRecordStore as VoteRecordStore
from court_votes.records import load_votes as load_votes
from court_votes.release import SCDBRelease as SCDBRelease
