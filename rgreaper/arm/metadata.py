"""Azure Resource Manager metadata client.

Fetches resource group and resource metadata (tags and creation time) for one
subscription and issues the deletion calls.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from azure.core.exceptions import AzureError
from azure.core.rest import HttpRequest
from azure.mgmt.resource import ResourceManagementClient

from rgreaper.exceptions import MetadataFetchError
from rgreaper.models.metadata import AccountContext, ResourceGroupMetadata, ResourceMetadata, identity_key

logger = logging.getLogger(__name__)

RESOURCE_GROUPS_API_VERSION = "2021-04-01"

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d+))?(?P<offset>Z|[+-]\d{2}:\d{2})?$"
)


class MetadataClient(Protocol):
    """Collaborator interface used by the reaper for one subscription."""

    context: AccountContext

    def fetch_resource_groups(self) -> list[ResourceGroupMetadata]: ...

    def fetch_resources_by_tag(self, tag_name: str, tag_value: str) -> list[str]: ...

    def fetch_resource_detail(self, resource_id: str) -> ResourceMetadata: ...

    def delete_resource_group(self, name: str, wait: bool = False) -> str: ...

    def delete_resource(self, resource_id: str, wait: bool = False) -> str: ...


def parse_arm_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ARM timestamp into an aware UTC datetime.

    ARM reports up to seven fractional second digits, which datetime cannot
    hold, so the fraction is truncated to microseconds.

    Returns:
        Parsed datetime, or None if the value is missing or unparseable
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None

    match = _TIMESTAMP_RE.match(value.strip())
    if not match:
        return None

    text = match.group("base")
    if match.group("fraction"):
        text += "." + match.group("fraction")[:6].ljust(6, "0")
    offset = match.group("offset")
    text += "+00:00" if offset in (None, "Z") else offset

    try:
        return datetime.fromisoformat(text).astimezone(timezone.utc)
    except ValueError:
        return None


def resource_group_from_id(resource_id: str) -> str:
    """Extract the resource group name from an ARM resource ID.

    Format: /subscriptions/{subscription_id}/resourceGroups/{resource_group_name}/...
    """
    parts = resource_id.split("/")
    lowered = [part.lower() for part in parts]
    try:
        index = lowered.index("resourcegroups")
        return parts[index + 1]
    except (ValueError, IndexError):
        return ""


def provider_and_type_from_id(resource_id: str) -> tuple[str, str]:
    """Extract the provider namespace and (possibly nested) resource type.

    /subscriptions/s/resourceGroups/rg/providers/Microsoft.Network/virtualNetworks/vnet/subnets/default
    gives ("Microsoft.Network", "virtualNetworks/subnets").

    Raises:
        ValueError: If the ID has no provider segment
    """
    parts = resource_id.strip("/").split("/")
    lowered = [part.lower() for part in parts]
    if "providers" not in lowered:
        raise ValueError(f"No provider in resource ID: {resource_id}")

    index = len(lowered) - 1 - lowered[::-1].index("providers")
    namespace = parts[index + 1]
    type_segments = parts[index + 2 :: 2]
    if not type_segments:
        raise ValueError(f"No resource type in resource ID: {resource_id}")
    return namespace, "/".join(type_segments)


def _error_code(error: AzureError) -> Optional[str]:
    odata_error = getattr(error, "error", None)
    return getattr(odata_error, "code", None)


class ArmMetadataClient:
    """Metadata client backed by the Azure management SDK.

    Resource details are served from the tag lookup when possible, since that
    listing already carries tags and creation time.

    Attributes:
        context: Subscription this client is bound to
        client: Resource management client for the subscription
    """

    def __init__(self, context: AccountContext, client: ResourceManagementClient) -> None:
        self.context = context
        self.client = client
        self._details: dict[str, ResourceMetadata] = {}
        self._api_versions: dict[tuple[str, str], str] = {}

    def fetch_resource_groups(self) -> list[ResourceGroupMetadata]:
        """Fetch all resource groups with tags and creation time.

        The typed SDK model has no creation time, so the listing is issued as a
        raw request with $expand=createdTime through the client pipeline.

        Raises:
            MetadataFetchError: If the listing fails
        """
        url: Optional[str] = f"/subscriptions/{self.context.subscription_id}/resourcegroups"
        params: Optional[dict[str, str]] = {"api-version": RESOURCE_GROUPS_API_VERSION, "$expand": "createdTime"}
        groups = []

        try:
            while url:
                page = self._get_json(url, params)
                for item in page.get("value", []):
                    groups.append(self._group_from_json(item))
                url = page.get("nextLink")
                params = None
        except (AzureError, ValueError, KeyError) as e:
            raise MetadataFetchError(
                self.context.subscription_id, f"Failed to list resource groups: {e}", _error_code(e)
            ) from e

        logger.debug(f"Fetched {len(groups)} resource group(s) from {self.context.subscription_id}")
        return groups

    def fetch_resources_by_tag(self, tag_name: str, tag_value: str) -> list[str]:
        """Fetch the IDs of resources carrying tag_name=tag_value.

        Raises:
            MetadataFetchError: If the listing fails
        """
        tag_filter = f"tagName eq '{tag_name}' and tagValue eq '{tag_value}'"
        resource_ids = []

        try:
            for item in self.client.resources.list(filter=tag_filter, expand="createdTime"):
                metadata = self._resource_from_model(item)
                self._details[identity_key(metadata.resource_id)] = metadata
                resource_ids.append(metadata.resource_id)
        except AzureError as e:
            raise MetadataFetchError(
                self.context.subscription_id, f"Failed to list resources tagged {tag_name}: {e}", _error_code(e)
            ) from e

        logger.debug(f"Fetched {len(resource_ids)} resource(s) tagged {tag_name}={tag_value}")
        return resource_ids

    def fetch_resource_detail(self, resource_id: str) -> ResourceMetadata:
        """Fetch metadata for one resource.

        Raises:
            MetadataFetchError: If the resource cannot be read
        """
        cached = self._details.get(identity_key(resource_id))
        if cached is not None:
            return cached

        try:
            api_version = self.resolve_api_version(resource_id)
            item = self._get_json(resource_id, {"api-version": api_version})
        except (AzureError, ValueError) as e:
            raise MetadataFetchError(self.context.subscription_id, f"Failed to read {resource_id}: {e}") from e

        system_data = item.get("systemData") or {}
        metadata = ResourceMetadata(
            resource_id=item.get("id", resource_id),
            name=item.get("name", ""),
            resource_group_name=resource_group_from_id(resource_id),
            tags=dict(item.get("tags") or {}),
            created_time=parse_arm_timestamp(item.get("createdTime") or system_data.get("createdAt")),
            resource_type=item.get("type"),
        )
        self._details[identity_key(resource_id)] = metadata
        return metadata

    def delete_resource_group(self, name: str, wait: bool = False) -> str:
        """Delete a resource group (cascades to its resources).

        Raises:
            azure.core.exceptions.AzureError: If the deletion request fails
        """
        poller = self.client.resource_groups.begin_delete(name)
        if wait:
            poller.result()
            return f"deleted resource group {name}"
        return f"deletion of resource group {name} started"

    def delete_resource(self, resource_id: str, wait: bool = False) -> str:
        """Delete a single resource.

        Raises:
            azure.core.exceptions.AzureError: If the deletion request fails
            ValueError: If no API version can be resolved for the resource type
        """
        api_version = self.resolve_api_version(resource_id)
        poller = self.client.resources.begin_delete_by_id(resource_id, api_version)
        if wait:
            poller.result()
            return f"deleted resource {resource_id}"
        return f"deletion of resource {resource_id} started"

    def resolve_api_version(self, resource_id: str) -> str:
        """Resolve the newest stable API version for a resource's type.

        Raises:
            ValueError: If the provider does not register the resource type
        """
        namespace, resource_type = provider_and_type_from_id(resource_id)
        key = (namespace.lower(), resource_type.lower())
        if key in self._api_versions:
            return self._api_versions[key]

        provider = self.client.providers.get(namespace)
        for registered in provider.resource_types or []:
            if (registered.resource_type or "").lower() != key[1]:
                continue
            versions = list(registered.api_versions or [])
            stable = [v for v in versions if "preview" not in v.lower()]
            chosen = (stable or versions or [None])[0]
            if chosen:
                self._api_versions[key] = chosen
                return chosen

        raise ValueError(f"No API version registered for {namespace}/{resource_type}")

    def _get_json(self, url: str, params: Optional[dict[str, str]]) -> dict[str, Any]:
        request = HttpRequest("GET", url, params=params)
        response = self.client._send_request(request)
        response.raise_for_status()
        return response.json()

    def _group_from_json(self, item: dict[str, Any]) -> ResourceGroupMetadata:
        return ResourceGroupMetadata(
            name=item["name"],
            tags=dict(item.get("tags") or {}),
            created_time=parse_arm_timestamp(item.get("createdTime")),
            location=item.get("location"),
        )

    def _resource_from_model(self, item: Any) -> ResourceMetadata:
        return ResourceMetadata(
            resource_id=item.id,
            name=item.name,
            resource_group_name=resource_group_from_id(item.id),
            tags=dict(item.tags or {}),
            created_time=parse_arm_timestamp(getattr(item, "created_time", None)),
            resource_type=item.type,
        )

