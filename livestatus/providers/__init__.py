from .hub import HubClient, build_subscription_form
from .youtube import LiveDetails, YouTubeClient

__all__ = [
    "HubClient",
    "LiveDetails",
    "YouTubeClient",
    "build_subscription_form",
]
