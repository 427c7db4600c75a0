"""Domain value objects."""

from museick.domain.value_objects.catalog_item import CatalogItem
from museick.domain.value_objects.period_key import PeriodKey
from museick.domain.value_objects.selection_role import Axis, ItemType, SelectionRole

__all__ = ["Axis", "CatalogItem", "ItemType", "PeriodKey", "SelectionRole"]
