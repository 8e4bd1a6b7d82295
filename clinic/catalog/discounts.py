"""
Pricing for one or more selected procedures.

Prices are resolved per booking line (custom price, selected specifications
or the procedure's own price) and then reduced by the quantity tiers
configured in DiscountConfig. All arithmetic is Decimal; amounts are only
rounded when rendered for display.
"""
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .models import DiscountConfig

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

SCOPE_PROCEDURE = "procedure"
SCOPE_BOOKING = "booking"
DISCOUNT_SCOPES = (SCOPE_PROCEDURE, SCOPE_BOOKING)


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> str:
    """Two-decimal rendering used by the JSON views."""
    return str(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class DiscountResult:
    original_total: Decimal
    discount_amount: Decimal
    final_total: Decimal
    discount_percentage: Decimal
    applied_config: Optional[Any] = None

    @property
    def has_discount(self) -> bool:
        return self.discount_percentage > ZERO

    def display(self) -> Dict[str, str]:
        return {
            "original_total": money(self.original_total),
            "discount_amount": money(self.discount_amount),
            "final_total": money(self.final_total),
            "discount_percentage": str(self.discount_percentage),
        }


def apply_percentage(original_total, percentage, config=None) -> DiscountResult:
    original_total = to_decimal(original_total)
    percentage = to_decimal(percentage)
    discount_amount = original_total * percentage / HUNDRED
    return DiscountResult(
        original_total=original_total,
        discount_amount=discount_amount,
        final_total=original_total - discount_amount,
        discount_percentage=percentage,
        applied_config=config,
    )


def no_discount(original_total) -> DiscountResult:
    return apply_percentage(original_total, ZERO)


def tier_matches(config, selected_groups_count: int) -> bool:
    if selected_groups_count < config.min_groups:
        return False
    return config.max_groups is None or selected_groups_count <= config.max_groups


def select_tier(configs: Iterable[Any], selected_groups_count: int):
    """
    Pick the matching tier with the highest percentage.

    Ranges are not compared for specificity: when tiers overlap the larger
    discount wins. Inactive tiers are ignored.
    """
    best = None
    for config in configs:
        if not getattr(config, "is_active", True):
            continue
        if not tier_matches(config, selected_groups_count):
            continue
        if best is None or to_decimal(config.discount_percentage) > to_decimal(best.discount_percentage):
            best = config
    return best


def resolve_discount(configs: Iterable[Any], selected_groups_count: int, original_total) -> DiscountResult:
    if selected_groups_count <= 0:
        return no_discount(original_total)
    config = select_tier(configs, selected_groups_count)
    if config is None:
        return no_discount(original_total)
    return apply_percentage(original_total, config.discount_percentage, config)


def active_configs(procedure) -> List[DiscountConfig]:
    return list(
        DiscountConfig.objects.filter(procedure=procedure, is_active=True).order_by("-discount_percentage")
    )


def discount_for_procedure(procedure, selected_groups_count: int, original_total) -> DiscountResult:
    return resolve_discount(active_configs(procedure), selected_groups_count, original_total)


# ===== LINE PRICING =====

@dataclass(frozen=True)
class LinePrice:
    procedure: Any
    unit_price: Decimal
    groups_count: int
    custom_price: Optional[Decimal] = None

    @property
    def is_custom(self) -> bool:
        return self.custom_price is not None


def price_line(procedure, specifications: Sequence[Any] = (), custom_price=None) -> LinePrice:
    """Custom price if given, else the selected specifications' sum, else the procedure price."""
    distinct = {getattr(spec, "pk", None) or id(spec): spec for spec in specifications}
    if custom_price is not None:
        unit_price = to_decimal(custom_price)
    elif distinct:
        unit_price = sum((to_decimal(spec.price) for spec in distinct.values()), ZERO)
    else:
        unit_price = to_decimal(procedure.price)
    return LinePrice(
        procedure=procedure,
        unit_price=unit_price,
        groups_count=len(distinct),
        custom_price=to_decimal(custom_price) if custom_price is not None else None,
    )


@dataclass(frozen=True)
class LineQuote:
    price: LinePrice
    discount: DiscountResult

    @property
    def procedure(self):
        return self.price.procedure

    @property
    def final_price(self) -> Decimal:
        return self.discount.final_total


@dataclass(frozen=True)
class BookingQuote:
    lines: List[LineQuote] = field(default_factory=list)
    scope: str = SCOPE_PROCEDURE

    @property
    def original_total(self) -> Decimal:
        return sum((line.discount.original_total for line in self.lines), ZERO)

    @property
    def discount_amount(self) -> Decimal:
        return sum((line.discount.discount_amount for line in self.lines), ZERO)

    @property
    def final_total(self) -> Decimal:
        return sum((line.discount.final_total for line in self.lines), ZERO)

    def display(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "original_total": money(self.original_total),
            "discount_amount": money(self.discount_amount),
            "final_total": money(self.final_total),
            "lines": [
                {
                    "procedure_id": line.procedure.pk,
                    "procedure": str(line.procedure),
                    "groups_count": line.price.groups_count,
                    "custom_price": money(line.price.custom_price) if line.price.is_custom else None,
                    **line.discount.display(),
                }
                for line in self.lines
            ],
        }


def quote_booking(
    lines: Sequence[Any],
    scope: str = SCOPE_PROCEDURE,
    configs_for: Optional[Callable[[Any], List[Any]]] = None,
) -> BookingQuote:
    """
    Price every line of a booking.

    ``lines`` are objects exposing ``procedure``, ``specifications`` and
    ``custom_price``. Custom priced lines are never discounted. With the
    "procedure" scope each line is matched against its own procedure's tiers;
    with the "booking" scope the combined selection is matched against the
    first procedure's tiers and the percentage is applied to every
    discountable line.
    """
    if scope not in DISCOUNT_SCOPES:
        raise ValueError(f"Unknown discount scope: {scope}")

    cache: Dict[Any, List[Any]] = {}

    def load(procedure):
        key = procedure.pk
        if key not in cache:
            cache[key] = (configs_for or active_configs)(procedure)
        return cache[key]

    prices = [price_line(line.procedure, line.specifications, line.custom_price) for line in lines]

    if scope == SCOPE_PROCEDURE:
        quoted = [
            LineQuote(price, no_discount(price.unit_price) if price.is_custom
                      else resolve_discount(load(price.procedure), price.groups_count, price.unit_price))
            for price in prices
        ]
        return BookingQuote(lines=quoted, scope=scope)

    discountable = [price for price in prices if not price.is_custom]
    aggregate = ZERO
    tier = None
    if discountable:
        groups = sum(price.groups_count for price in discountable)
        aggregate = sum((price.unit_price for price in discountable), ZERO)
        primary = prices[0].procedure
        tier = resolve_discount(load(primary), groups, aggregate).applied_config

    quoted = []
    for price in prices:
        if price.is_custom or tier is None:
            quoted.append(LineQuote(price, no_discount(price.unit_price)))
        else:
            quoted.append(LineQuote(price, apply_percentage(price.unit_price, tier.discount_percentage, tier)))
    if tier is not None:
        logger.debug(f"Booking-wide tier {tier} applied to total {aggregate}")
    return BookingQuote(lines=quoted, scope=scope)
