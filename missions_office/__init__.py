"""Data and services for the church missions office."""

from .accounts import (
    create_account_for_individual,
    create_accounts_for_unlinked_individuals,
    create_supporter_account,
)
from .errors import (
    DuplicateRecordError,
    IdentityConflictError,
    InsufficientDataError,
    StoreError,
)
from .identity import IdentityResolver, Profile
from .office import MissionsOffice, open_office
from .pledges import PledgeInput, PledgeService, PublicPledgeForm
from .results import Result
from .store import MissionsStore, format_currency, individual_display_name

__all__ = [
    "DuplicateRecordError",
    "IdentityConflictError",
    "IdentityResolver",
    "InsufficientDataError",
    "MissionsOffice",
    "MissionsStore",
    "PledgeInput",
    "PledgeService",
    "Profile",
    "PublicPledgeForm",
    "Result",
    "StoreError",
    "create_account_for_individual",
    "create_accounts_for_unlinked_individuals",
    "create_supporter_account",
    "format_currency",
    "individual_display_name",
    "open_office",
]
