"""Building blocks of the link-based lock."""

from .claim_file import temp_lock_name, write_claim_file
from .identity import ClaimOutcome, FileIdentity, LinkClaimer
from .retry import RetryScheduler, RetryState
from .staleness import LockRecord, StalenessDetector

__all__ = [
    "temp_lock_name",
    "write_claim_file",
    "ClaimOutcome",
    "FileIdentity",
    "LinkClaimer",
    "RetryScheduler",
    "RetryState",
    "LockRecord",
    "StalenessDetector",
]
