"""Application services."""

from museick.application.services.account_service import (
    AccountService,
    AuthUrlResult,
    TokenResult,
)
from museick.application.services.playlist_service import PlaylistResult, PlaylistService
from museick.application.services.search_debouncer import SearchDebouncer

# Hey future me - ShortlistWorkflow is the ONLY thing the UI should drive for a slot.
# It never raises DomainExceptions, it returns WorkflowOutcome.
from museick.application.services.shortlist_workflow import (
    RECONNECT_MESSAGE,
    ShortlistEntry,
    ShortlistWorkflow,
    WorkflowOutcome,
)

__all__ = [
    "RECONNECT_MESSAGE",
    "AccountService",
    "AuthUrlResult",
    "PlaylistResult",
    "PlaylistService",
    "SearchDebouncer",
    "ShortlistEntry",
    "ShortlistWorkflow",
    "TokenResult",
    "WorkflowOutcome",
]
