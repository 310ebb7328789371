"""Tests for resource metadata models."""

from __future__ import annotations

import pytest

from rgreaper.models.metadata import AccountContext, ResourceGroupMetadata, ResourceMetadata, identity_key


class TestMetadataModels:
    """Test suite for metadata models."""

    def test_account_label(self) -> None:
        assert AccountContext("sub-1").label == "sub-1"
        assert AccountContext("sub-1", "dev").label == "dev (sub-1)"

    def test_account_context_equality(self) -> None:
        assert AccountContext("sub-1") == AccountContext("sub-1")
        assert AccountContext("sub-1") != AccountContext("sub-2")

    def test_identity_key_is_case_insensitive(self) -> None:
        assert identity_key("RG-Demo") == identity_key("rg-demo")

    def test_group_defaults(self) -> None:
        group = ResourceGroupMetadata(name="rg-demo")

        assert group.identity == "rg-demo"
        assert group.tags == {}
        assert group.created_time is None
        assert group.validate() is True

    def test_group_requires_name(self) -> None:
        with pytest.raises(ValueError, match="name cannot be empty"):
            ResourceGroupMetadata(name="").validate()

    def test_resource_identity_and_validation(self) -> None:
        resource = ResourceMetadata(
            resource_id="/subscriptions/s/resourceGroups/rg/providers/Microsoft.Web/sites/app",
            name="app",
            resource_group_name="rg",
        )

        assert resource.identity == resource.resource_id
        assert resource.validate() is True

    def test_resource_invalid_id(self) -> None:
        resource = ResourceMetadata(resource_id="app", name="app", resource_group_name="rg")

        with pytest.raises(ValueError, match="Invalid resource ID"):
            resource.validate()
