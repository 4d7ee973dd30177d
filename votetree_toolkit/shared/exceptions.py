"""
Exception hierarchy for the Voting Tree Toolkit.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (RPC, network)
- NonRetryableException: Permanent failures that won't benefit from retry (bad data)
- ConfigurationException: Startup/config errors that prevent operation

Concrete exceptions:
- ChainQueryException -> RetryableException (a chain read failed after retries)
- PollardSizeMismatchException -> NonRetryableException (protocol violation)
- UnknownAccountException -> NonRetryableException (address not in snapshot)
- ArtifactCacheException -> NonRetryableException (corrupt/stale cache file)
- DisputeStateException -> NonRetryableException (dispute walk can't continue)
"""


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - RPC timeouts
    - Rate limiting
    - Temporary network issues
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid input data
    - Missing required data
    - Protocol violations
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - Required environment variables are missing
    - Invalid configuration values
    - Missing required resources
    """

    pass


class ChainQueryException(RetryableException):
    """
    Exception for a failed chain read.

    Carries the name of the query that failed so callers can tell which
    part of the snapshot or configuration could not be fetched.
    """

    def __init__(self, query: str, cause: Exception):
        super().__init__(f"error {query}: {cause}")
        self.query = query
        self.cause = cause


class PollardSizeMismatchException(NonRetryableException):
    """
    Raised when a proposed pollard has a different size than the local one.

    This is a protocol violation by the proposer, not a "no mismatch" result.
    """

    def __init__(self, local_size: int, proposed_size: int):
        super().__init__(
            f"pollard size mismatch: local pollard = {local_size} nodes, "
            f"proposed pollard = {proposed_size} nodes"
        )
        self.local_size = local_size
        self.proposed_size = proposed_size


class UnknownAccountException(NonRetryableException):
    """Raised when an address is not part of the voting info snapshot."""

    def __init__(self, address: str, block_number: int):
        super().__init__(
            f"node {address} is not present in the voting info snapshot "
            f"for block {block_number}"
        )
        self.address = address
        self.block_number = block_number


class ArtifactCacheException(NonRetryableException):
    """
    Exception for unreadable cached artifacts.

    Covers checksum mismatches, undecodable files and malformed checksum
    tables. Managers treat it as a cache miss.
    """

    pass


class DisputeStateException(NonRetryableException):
    """
    Raised when a proposal's on-chain dispute can't be followed.

    Covers a responded challenge with no matching RootSubmitted event, a
    challenge search that lands on the index it started from, and challenge
    states the walk doesn't know how to handle.
    """

    def __init__(self, proposal_id: int, index: int, reason: str):
        super().__init__(
            f"proposal {proposal_id}, index {index}: {reason}"
        )
        self.proposal_id = proposal_id
        self.index = index
        self.reason = reason
