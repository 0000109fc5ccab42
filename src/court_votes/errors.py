"""Exception types raised by the record store and the analysis phases."""


class CourtVotesError(Exception):
    """Base class for all court_votes errors."""


class SchemaError(CourtVotesError):
    """A required column is missing or unusable, or the one-vote-per-case rule is broken."""


class InsufficientDataError(CourtVotesError):
    """A unit (case, period, voter set) has too little data for the requested statistic."""


class InvalidParameterError(CourtVotesError, ValueError):
    """A call received a parameter outside its valid domain."""


class InvalidKError(InvalidParameterError):
    """Requested cluster count is outside [1, number of leaves]."""


class NoDataError(CourtVotesError, KeyError):
    """Lookup of a voter pair that never sat on a case together."""
