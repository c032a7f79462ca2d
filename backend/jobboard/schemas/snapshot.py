"""
Order snapshots - Frozen description of what a payment bought

A snapshot is written once when the payment is created and is the only
input approval reads product, duration, options and feature grants from.
Later catalog changes therefore never alter a pending order.

Variants (discriminated on ``type``):
    purchase  first checkout of a new ad, approval activates the ad
    upgrade   move an ACTIVE ad to a higher tier, total_amount accumulates
    renew     revive an EXPIRED ad on the same tier, total_amount replaced

Snapshots stored before the ``type`` field existed are read as purchases.
"""

from typing import Annotated, Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class ProductRef(BaseModel):
    id: str
    name: str


class OptionLine(BaseModel):
    id: str
    name: str
    value: Optional[str] = None
    price: int = 0


class FeatureGrants(BaseModel):
    auto_jump_per_day: int
    manual_jump_per_day: int
    max_edits: int


class PriceBreakdown(BaseModel):
    line: int
    upgrade: int
    options: int
    total: int


class _SnapshotBase(BaseModel):
    product: ProductRef
    options: List[OptionLine] = []
    duration: int
    features: FeatureGrants
    breakdown: PriceBreakdown


class PurchaseSnapshot(_SnapshotBase):
    type: Literal["purchase"] = "purchase"


class UpgradeSnapshot(_SnapshotBase):
    type: Literal["upgrade"] = "upgrade"
    from_product_id: str


class RenewSnapshot(_SnapshotBase):
    type: Literal["renew"] = "renew"


ItemSnapshot = Annotated[
    Union[PurchaseSnapshot, UpgradeSnapshot, RenewSnapshot],
    Field(discriminator="type"),
]

_snapshot_adapter = TypeAdapter(ItemSnapshot)


def parse_snapshot(raw: Mapping[str, Any]) -> Union[PurchaseSnapshot, UpgradeSnapshot, RenewSnapshot]:
    data = dict(raw)
    data.setdefault("type", "purchase")
    return _snapshot_adapter.validate_python(data)
