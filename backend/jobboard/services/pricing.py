"""
Pricing Catalog - Static ad products, add-on options and price quotes

Every paid placement is priced as:

    total = LINE price (base listing, always charged)
          + tier surcharge (0 for LINE itself)
          + sum of option prices (ICON is free on tiers with include_icon_free)

Products are ordered by rank (lower = more prominent placement). FREE is the
credit-funded listing: unlimited duration (0), no price, no options and no
manual jumps.

Usage:
    quote = build_quote("VIP", 60, ["BOLD", "ICON"], {"ICON": "3"})
    quote.breakdown.total   # 415000 + 125000 + 55000 + 55000
    quote.features.manual_jump_per_day  # 18
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from jobboard.errors import ValidationFailed
from jobboard.schemas.snapshot import FeatureGrants, OptionLine, PriceBreakdown, ProductRef

PAID_DURATIONS = (30, 60, 90)
UNLIMITED_DURATION = 0
FREE_PRODUCT_ID = "FREE"
BASE_PRODUCT_ID = "LINE"


@dataclass(frozen=True)
class AdProduct:
    id: str
    name: str
    rank: int
    max_regions: int
    auto_jump_per_day: int
    manual_jump_per_day: int
    max_edits: int
    include_icon_free: bool = False
    max_slots: Optional[int] = None
    pricing: Dict[int, int] = field(default_factory=dict)

    @property
    def is_free(self) -> bool:
        return self.id == FREE_PRODUCT_ID

    @property
    def features(self) -> FeatureGrants:
        return FeatureGrants(
            auto_jump_per_day=self.auto_jump_per_day,
            manual_jump_per_day=self.manual_jump_per_day,
            max_edits=self.max_edits,
        )


@dataclass(frozen=True)
class AdOptionSpec:
    id: str
    name: str
    pricing: Dict[int, int]
    choices: Optional[int] = None


AD_PRODUCTS: Dict[str, AdProduct] = {
    "FREE": AdProduct(
        id="FREE", name="Free listing", rank=100, max_regions=1,
        auto_jump_per_day=0, manual_jump_per_day=0, max_edits=1,
        pricing={UNLIMITED_DURATION: 0},
    ),
    "LINE": AdProduct(
        id="LINE", name="Line listing", rank=99, max_regions=1,
        auto_jump_per_day=12, manual_jump_per_day=0, max_edits=1,
        pricing={30: 70_000, 60: 125_000, 90: 170_000},
    ),
    "RECOMMEND": AdProduct(
        id="RECOMMEND", name="Recommended", rank=6, max_regions=2,
        auto_jump_per_day=24, manual_jump_per_day=3, max_edits=1,
        pricing={30: 100_000, 60: 185_000, 90: 240_000},
    ),
    "URGENT": AdProduct(
        id="URGENT", name="Urgent", rank=5, max_regions=2,
        auto_jump_per_day=24, manual_jump_per_day=5, max_edits=1,
        include_icon_free=True,
        pricing={30: 100_000, 60: 185_000, 90: 240_000},
    ),
    "SPECIAL": AdProduct(
        id="SPECIAL", name="Special", rank=4, max_regions=2,
        auto_jump_per_day=28, manual_jump_per_day=8, max_edits=2,
        pricing={30: 130_000, 60: 235_000, 90: 310_000},
    ),
    "PREMIUM": AdProduct(
        id="PREMIUM", name="Premium", rank=3, max_regions=3,
        auto_jump_per_day=36, manual_jump_per_day=12, max_edits=2,
        pricing={30: 180_000, 60: 325_000, 90: 430_000},
    ),
    "VIP": AdProduct(
        id="VIP", name="VIP", rank=2, max_regions=3,
        auto_jump_per_day=42, manual_jump_per_day=18, max_edits=3,
        pricing={30: 230_000, 60: 415_000, 90: 550_000},
    ),
    "BANNER": AdProduct(
        id="BANNER", name="Top banner", rank=1, max_regions=0,
        auto_jump_per_day=48, manual_jump_per_day=24, max_edits=5,
        include_icon_free=True, max_slots=12,
        pricing={30: 350_000, 60: 650_000, 90: 900_000},
    ),
}

AD_OPTIONS: Dict[str, AdOptionSpec] = {
    "BOLD": AdOptionSpec(id="BOLD", name="Bold title", pricing={30: 30_000, 60: 55_000, 90: 70_000}),
    "ICON": AdOptionSpec(id="ICON", name="Icon", choices=10, pricing={30: 30_000, 60: 55_000, 90: 70_000}),
    "HIGHLIGHT": AdOptionSpec(
        id="HIGHLIGHT", name="Highlight color", choices=8, pricing={30: 30_000, 60: 55_000, 90: 70_000}
    ),
    "KAKAO_ALERT": AdOptionSpec(
        id="KAKAO_ALERT", name="Resume alert", pricing={30: 50_000, 60: 90_000, 90: 120_000}
    ),
}


@dataclass(frozen=True)
class Quote:
    product: ProductRef
    duration: int
    options: List[OptionLine]
    features: FeatureGrants
    breakdown: PriceBreakdown


def get_product(product_id: str) -> AdProduct:
    product = AD_PRODUCTS.get(product_id)
    if product is None:
        raise ValidationFailed(f"Unknown product: {product_id}")
    return product


def validate_duration(product: AdProduct, duration_days: int) -> None:
    if product.is_free:
        if duration_days != UNLIMITED_DURATION:
            raise ValidationFailed("Free listings only support the unlimited duration (0)")
        return
    if duration_days not in PAID_DURATIONS:
        raise ValidationFailed("Duration must be 30, 60 or 90 days")


def validate_options(
    product: AdProduct,
    option_ids: Sequence[str],
    option_values: Optional[Mapping[str, str]] = None,
) -> None:
    if product.is_free and option_ids:
        raise ValidationFailed("Free listings cannot carry paid options")
    if len(set(option_ids)) != len(option_ids):
        raise ValidationFailed("Duplicate options")
    for option_id in option_ids:
        spec = AD_OPTIONS.get(option_id)
        if spec is None:
            raise ValidationFailed(f"Unknown option: {option_id}")
        value = (option_values or {}).get(option_id)
        if value and spec.choices:
            if not value.isdigit() or not 1 <= int(value) <= spec.choices:
                raise ValidationFailed(f"{spec.name} choice must be between 1 and {spec.choices}")


def validate_regions(product: AdProduct, regions: Sequence[str]) -> None:
    # BANNER has no region targeting (max_regions == 0)
    if product.max_regions == 0:
        return
    if not regions:
        raise ValidationFailed("Select at least one region")
    if len(regions) > product.max_regions:
        raise ValidationFailed(f"{product.name} allows at most {product.max_regions} regions")


def option_price(product: AdProduct, option_id: str, duration_days: int) -> int:
    if option_id == "ICON" and product.include_icon_free:
        return 0
    return AD_OPTIONS[option_id].pricing[duration_days]


def build_quote(
    product_id: str,
    duration_days: int,
    option_ids: Sequence[str] = (),
    option_values: Optional[Mapping[str, str]] = None,
) -> Quote:
    """
    Price an order and resolve the feature grants of its product.

    Pure function over the static tables. Validates ids and duration so the
    caller can hand user input straight in.

    Args:
        product_id: Tier to price
        duration_days: 30/60/90 (0 for FREE)
        option_ids: Add-on option ids
        option_values: Chosen value per option (icon number, color number)

    Returns:
        Quote with breakdown {line, upgrade, options, total} and features

    Raises:
        ValidationFailed: Unknown product/option or invalid duration
    """
    product = get_product(product_id)
    validate_duration(product, duration_days)
    validate_options(product, option_ids, option_values)

    option_values = option_values or {}
    options = [
        OptionLine(
            id=option_id,
            name=AD_OPTIONS[option_id].name,
            value=option_values.get(option_id) or None,
            price=option_price(product, option_id, duration_days),
        )
        for option_id in option_ids
    ]

    if product.is_free:
        line = upgrade = 0
    else:
        line = AD_PRODUCTS[BASE_PRODUCT_ID].pricing[duration_days]
        upgrade = product.pricing[duration_days] if product.id != BASE_PRODUCT_ID else 0
    options_total = sum(opt.price for opt in options)

    return Quote(
        product=ProductRef(id=product.id, name=product.name),
        duration=duration_days,
        options=options,
        features=product.features,
        breakdown=PriceBreakdown(
            line=line,
            upgrade=upgrade,
            options=options_total,
            total=line + upgrade + options_total,
        ),
    )
