"""Azure management client factory."""

from __future__ import annotations

from azure.core.credentials import TokenCredential
from azure.mgmt.resource import ResourceManagementClient

USER_AGENT = "rgreaper"


def create_resource_client(subscription_id: str, credential: TokenCredential) -> ResourceManagementClient:
    """Create a resource management client bound to one subscription.

    Args:
        subscription_id: Azure subscription ID
        credential: Azure credential

    Returns:
        ResourceManagementClient for the subscription
    """
    return ResourceManagementClient(credential, subscription_id, user_agent=USER_AGENT)
