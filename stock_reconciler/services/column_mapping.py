"""Resolution of arbitrary CSV headers to the semantic inventory fields.

Every supplier (and optionally every store) carries an ordered list of
acceptable column aliases per field. Resolution is a pure function of the
header row and a ``SupplierMappingConfig`` so it can be exercised without a
database.
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from stock_reconciler.core.exceptions import MissingRequiredColumns

FIELD_BARCODE = "barcode"
FIELD_NAME = "name"
FIELD_QUANTITY = "quantity"
FIELD_PRICE = "price"
FIELD_CATEGORY = "category"

SEMANTIC_FIELDS = (FIELD_BARCODE, FIELD_NAME, FIELD_QUANTITY, FIELD_PRICE, FIELD_CATEGORY)
REQUIRED_FIELDS = (FIELD_BARCODE, FIELD_QUANTITY)


class SupplierMappingConfig(BaseModel):
    """Ordered column aliases per semantic field"""

    model_config = ConfigDict(frozen=True)

    barcode: List[str] = Field(default_factory=list)
    name: List[str] = Field(default_factory=list)
    quantity: List[str] = Field(default_factory=list)
    price: List[str] = Field(default_factory=list)
    category: List[str] = Field(default_factory=list)

    def aliases(self, field: str) -> List[str]:
        return list(getattr(self, field))

    @classmethod
    def from_columns(cls, source: Any) -> Optional["SupplierMappingConfig"]:
        """Build a config from an object exposing ``<field>_columns`` attributes.

        Returns ``None`` when the source defines no aliases at all, which is the
        normal case for stores without their own mapping.
        """
        if source is None:
            return None

        values = {}
        for field in SEMANTIC_FIELDS:
            columns = getattr(source, f"{field}_columns", None) or []
            values[field] = [str(c) for c in columns if c is not None and str(c).strip()]

        if not any(values.values()):
            return None
        return cls(**values)

    @classmethod
    def layered(cls, *configs: Optional["SupplierMappingConfig"]) -> "SupplierMappingConfig":
        """Merge configs so aliases of earlier (more specific) configs are tried first"""
        merged: Dict[str, List[str]] = {field: [] for field in SEMANTIC_FIELDS}
        for config in configs:
            if config is None:
                continue
            for field in SEMANTIC_FIELDS:
                for alias in config.aliases(field):
                    if alias not in merged[field]:
                        merged[field].append(alias)
        return cls(**merged)


# Generic fallback used when neither the store nor the supplier matches a column
DEFAULT_MAPPING = SupplierMappingConfig(
    barcode=["barcode", "ean", "sku", "code", "product_code"],
    name=["name", "product_name", "title", "item_name"],
    quantity=["quantity", "qty", "stock", "count", "menge"],
    price=["price", "unit_price", "cost", "unit_cost"],
    category=["category", "type", "group"],
)


class ColumnResolver:
    def resolve(
        self,
        headers: Sequence[str],
        config: SupplierMappingConfig
    ) -> Dict[str, Optional[str]]:
        """Map each semantic field to the raw header it reads from.

        For every field the aliases are scanned in declared order and the first
        header whose lowercase form contains the lowercase alias wins, so alias
        order decides ties rather than header order.
        """
        lowered = [(header, str(header).strip().lower()) for header in headers]
        mapping: Dict[str, Optional[str]] = {}

        for field in SEMANTIC_FIELDS:
            mapping[field] = None
            for alias in config.aliases(field):
                needle = alias.strip().lower()
                if not needle:
                    continue
                match = next((header for header, lower in lowered if needle in lower), None)
                if match is not None:
                    mapping[field] = match
                    break

        return mapping

    def resolve_required(
        self,
        headers: Sequence[str],
        config: SupplierMappingConfig
    ) -> Dict[str, Optional[str]]:
        mapping = self.resolve(headers, config)
        ensure_required(mapping)
        return mapping


def ensure_required(mapping: Dict[str, Optional[str]], required: Iterable[str] = REQUIRED_FIELDS) -> None:
    missing = [field for field in required if not mapping.get(field)]
    if missing:
        raise MissingRequiredColumns(missing)
