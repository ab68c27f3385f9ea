"""Abstract repository for the catalog (variants and their parents).

Defined in the domain layer so the domain never depends on
infrastructure. Concrete implementations live in the infrastructure layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from confectionery.domain.model.catalog import ProductParent, ProductVariant


class CatalogRepository(ABC):

    @abstractmethod
    def get_variant(self, variant_id: str) -> ProductVariant | None:
        """Return a variant by its ID, or None if not found."""

    @abstractmethod
    def get_parent(self, parent_id: str) -> ProductParent | None:
        """Return a product parent by its ID, or None if not found."""

    @abstractmethod
    def list_variants(self) -> list[ProductVariant]:
        """Return every variant in the catalog."""

    @abstractmethod
    def save_variant(self, variant: ProductVariant) -> None:
        """Persist a new or updated variant."""

    @abstractmethod
    def save_parent(self, parent: ProductParent) -> None:
        """Persist a new or updated product parent."""
