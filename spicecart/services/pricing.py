from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from spicecart.core.config import settings
from spicecart.domain.enums import Channel, RuleScope
from spicecart.models.shipping import FreeShippingRule

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """Quantize to cents, half-up."""
    if value is None:
        return ZERO.quantize(CENT)
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricedLine:
    """What the engine needs from one cart line."""

    quantity: int
    unit_price: Decimal | None = None
    variant_price: Decimal | None = None
    product_price: Decimal | None = None
    has_tax: bool = False

    @property
    def effective_unit_price(self) -> Decimal:
        return effective_unit_price(self.unit_price, self.variant_price, self.product_price)

    @property
    def line_total(self) -> Decimal:
        return to_money(self.effective_unit_price * self.quantity)


@dataclass(frozen=True)
class FreeShippingStatus:
    eligible: bool
    threshold: Decimal
    expires_at: datetime | None
    remaining: Decimal


def effective_unit_price(
    unit_price: Decimal | None,
    variant_price: Decimal | None,
    product_price: Decimal | None,
) -> Decimal:
    """Stored snapshot, then variant price, then live product price."""
    for candidate in (unit_price, variant_price, product_price):
        if candidate is not None:
            return to_money(candidate)
    return to_money(ZERO)


def snapshot_price(product_price: Decimal | None, variant_price: Decimal | None = None) -> Decimal | None:
    """Price captured on a line at add time."""
    if variant_price is not None:
        return to_money(variant_price)
    if product_price is not None:
        return to_money(product_price)
    return None


def compute_subtotal(lines: Iterable[PricedLine]) -> Decimal:
    return to_money(sum((line.line_total for line in lines), ZERO))


def compute_tax(lines: Iterable[PricedLine], rate: Decimal | None = None) -> Decimal:
    """Tax on flagged lines only, kept out of the subtotal."""
    rate = settings.TAX_RATE if rate is None else Decimal(str(rate))
    taxable = sum((line.line_total for line in lines if line.has_tax), ZERO)
    return to_money(taxable * rate)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_rule_active(rule: FreeShippingRule, now: datetime | None = None) -> bool:
    if not rule.is_active:
        return False
    if rule.expires_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return _aware(rule.expires_at) > _aware(now)


def select_free_shipping_rule(
    rules: Sequence[FreeShippingRule],
    channel: Channel,
    now: datetime | None = None,
) -> FreeShippingRule | None:
    """The active rule scoped to ``channel`` wins over an ``all`` rule."""
    channel_scope = RuleScope(Channel(channel).value)
    candidates = [rule for rule in rules if is_rule_active(rule, now)]
    for scope in (channel_scope, RuleScope.all):
        for rule in candidates:
            if RuleScope(rule.applies_to) is scope:
                return rule
    return None


def evaluate_free_shipping(rule: FreeShippingRule | None, subtotal: Decimal) -> FreeShippingStatus | None:
    """None means no promotion is running, which is not the same as ineligible."""
    if rule is None:
        return None
    threshold = to_money(rule.threshold_amount)
    subtotal = to_money(subtotal)
    return FreeShippingStatus(
        eligible=subtotal >= threshold,
        threshold=threshold,
        expires_at=rule.expires_at,
        remaining=max(ZERO, threshold - subtotal).quantize(CENT),
    )
