"""Remote hub collaborator and async helpers shared by all commands."""

from .async_utils import gather_limited, run_sync, run_sync_limited
from .client import HubClient, RestHubClient

__all__ = [
    "HubClient",
    "RestHubClient",
    "gather_limited",
    "run_sync",
    "run_sync_limited",
]
