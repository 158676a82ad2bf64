"""
Balancer Exceptions

Every error in this package is recoverable: the user corrects the input
or retries the commit. Draft state is never lost because of one of these.
"""

from typing import Optional


class BalancerError(Exception):
    """Base exception for the balancer."""
    pass


class EntryValidationError(BalancerError):
    """
    Input or batch failed validation.

    Raised for bad amount input, invalid splits and batches the commit
    gate refused. When raised by a commit, `decision` holds the full
    CommitDecision so callers can show every failed invariant.
    """

    def __init__(self, message: str, issues: Optional[list] = None, decision=None):
        self.issues = list(issues or [])
        self.decision = decision
        super().__init__(message)


class EditingBlockedError(BalancerError):
    """The session's capabilities do not allow this action."""
    pass


class PersistenceError(BalancerError):
    """
    The persistence collaborator failed.

    The message is the collaborator's own, shown verbatim. Nothing was
    partially committed, so there is nothing to roll back.
    """
    pass
