"""Domain layer for condopay application."""

from condopay.domain.obligation import ObligationService
from condopay.domain.credit import CreditLedgerService
from condopay.domain.remainder import RemainderGenerator
from condopay.domain.validation import Decision, ValidationService
from condopay.domain.goals import DistributedGoalService
from condopay.domain.directory import DirectoryService
from condopay.domain.rates import RateResolver

__all__ = [
    "ObligationService",
    "CreditLedgerService",
    "RemainderGenerator",
    "ValidationService",
    "Decision",
    "DistributedGoalService",
    "DirectoryService",
    "RateResolver",
]
