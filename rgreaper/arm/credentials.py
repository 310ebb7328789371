"""Azure credential handling and subscription enumeration."""

from __future__ import annotations

import logging
from typing import Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential, DefaultAzureCredential
from azure.mgmt.resource import SubscriptionClient

from rgreaper.exceptions import CredentialValidationError
from rgreaper.models.metadata import AccountContext

logger = logging.getLogger(__name__)

ENABLED_STATE = "Enabled"


def get_credential(
    tenant_id: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> TokenCredential:
    """Build an Azure credential.

    Uses a service principal when tenant, client ID and secret are all given,
    otherwise falls back to DefaultAzureCredential (environment, managed
    identity, Azure CLI login, ...).

    Raises:
        CredentialValidationError: If only part of the service principal is configured
    """
    sp_values = [tenant_id, client_id, client_secret]
    if all(sp_values):
        logger.debug(f"Using service principal {client_id} in tenant {tenant_id}")
        return ClientSecretCredential(tenant_id=tenant_id, client_id=client_id, client_secret=client_secret)

    if any(sp_values):
        raise CredentialValidationError(
            "Incomplete service principal configuration: tenant_id, client_id and client_secret are all required"
        )

    logger.debug("Using DefaultAzureCredential")
    return DefaultAzureCredential()


def list_subscriptions(credential: TokenCredential) -> list[AccountContext]:
    """List the enabled subscriptions visible to a credential.

    Raises:
        CredentialValidationError: If the subscriptions cannot be enumerated
    """
    try:
        client = SubscriptionClient(credential)
        subscriptions = list(client.subscriptions.list())
    except AzureError as e:
        raise CredentialValidationError(f"Unable to enumerate subscriptions: {e}") from e

    contexts = []
    for subscription in subscriptions:
        state = getattr(subscription, "state", None)
        state = getattr(state, "value", state)
        if state and state != ENABLED_STATE:
            logger.info(f"Skipping subscription {subscription.subscription_id} in state {state}")
            continue
        contexts.append(AccountContext(subscription_id=subscription.subscription_id, display_name=subscription.display_name))

    logger.debug(f"Found {len(contexts)} enabled subscription(s)")
    return contexts
