"""
Model mixins providing reusable fields for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key
    MetadataMixin: Free-form JSON metadata with get/set helpers
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID as primary key instead of an auto-increment integer.

    Order and payment identifiers appear in URLs; UUIDs keep them
    non-guessable and do not reveal volume.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier (UUID v4)",
    )

    class Meta:
        abstract = True


class MetadataMixin(models.Model):
    """
    Free-form JSON metadata storage.

    Usage:
        intent.set_metadata("cart", snapshot)
        snapshot = intent.get_metadata("cart", {})
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Free-form metadata",
    )

    class Meta:
        abstract = True

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return (self.metadata or {}).get(key, default)

    def set_metadata(self, key: str, value: Any) -> None:
        """Set a key in memory; the caller saves the instance."""
        if self.metadata is None:
            self.metadata = {}
        self.metadata[key] = value
