"""Rental pricing: base daily rate plus optional extras."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from django.conf import settings

from core.exceptions import InvalidAddons, InvalidRange
from core.intervals import whole_days_between

CENTS = Decimal('0.01')


class Rule(str, Enum):
    PER_DAY = 'per_day'
    PER_UNIT = 'per_unit'
    FLAT = 'flat'


INSURANCE_TIERS = ('basic', 'full')

# Accepted spellings per canonical add-on field.
_ALIASES: dict[str, tuple[str, ...]] = {
    'driver': ('driver', 'chauffeur'),
    'extra_km_packs': ('extra_km_packs', 'extraKmPacks', 'extra_km_qty', 'extraKmQty'),
    'delivery': ('delivery',),
    'child_seats': ('child_seats', 'childSeats', 'child_seat_qty', 'childSeatQty'),
    'navigation': ('navigation', 'gps_navigation', 'gpsNavigation'),
    'insurance': ('insurance', 'insurance_tier', 'insuranceTier', 'insurance_type', 'insuranceType'),
}


@dataclass(frozen=True)
class AddonSelection:
    driver: bool = False
    extra_km_packs: int = 0
    delivery: bool = False
    child_seats: int = 0
    navigation: bool = False
    insurance: str = ''

    def __post_init__(self) -> None:
        if self.extra_km_packs < 0:
            raise InvalidAddons('Extra distance packs cannot be negative.')
        if self.child_seats < 0:
            raise InvalidAddons('Child seat quantity cannot be negative.')
        if self.insurance and self.insurance not in INSURANCE_TIERS:
            raise InvalidAddons(f'Unknown insurance tier "{self.insurance}".')

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> AddonSelection:
        """Normalise a loosely-shaped add-on payload into a selection."""
        if not payload:
            return cls()
        if not isinstance(payload, Mapping):
            raise InvalidAddons('Add-ons must be an object.')

        values: dict[str, Any] = {}
        for name, aliases in _ALIASES.items():
            for alias in aliases:
                if alias in payload and payload[alias] not in (None, ''):
                    values[name] = payload[alias]
                    break

        # {"childSeat": true, "childSeatQty": 2} and {"insurance": true, "insuranceType": "full"}
        if 'child_seats' not in values and _as_bool(payload.get('childSeat', payload.get('child_seat'))):
            values['child_seats'] = 1
        insurance = values.get('insurance')
        if isinstance(insurance, bool):
            values['insurance'] = ''
            if insurance:
                tier = next((payload[alias] for alias in _ALIASES['insurance'][1:] if payload.get(alias)), 'basic')
                values['insurance'] = tier

        return cls(
            driver=_as_bool(values.get('driver')),
            extra_km_packs=_as_int(values.get('extra_km_packs'), 'extra_km_packs'),
            delivery=_as_bool(values.get('delivery')),
            child_seats=_as_int(values.get('child_seats'), 'child_seats'),
            navigation=_as_bool(values.get('navigation')),
            insurance=str(values.get('insurance') or '').strip().lower(),
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PriceLine:
    code: str
    rule: Rule
    unit_price: Decimal
    quantity: int
    amount: Decimal


@dataclass(frozen=True)
class PriceQuote:
    days: int
    daily_rate: Decimal
    base: Decimal
    addons_total: Decimal
    total: Decimal
    lines: tuple[PriceLine, ...] = field(default_factory=tuple)


def addon_prices() -> dict[str, Decimal]:
    return {key: Decimal(str(value)) for key, value in settings.RENTAL_ADDON_PRICES.items()}


def addon_lines(addons: AddonSelection, days: int, prices: Mapping[str, Decimal] | None = None) -> list[PriceLine]:
    prices = prices or addon_prices()
    selected: list[tuple[str, Rule, str, int]] = []
    if addons.driver:
        selected.append(('driver', Rule.PER_DAY, 'driver', days))
    if addons.extra_km_packs:
        selected.append(('extra_km_packs', Rule.PER_UNIT, 'extra_km_pack', addons.extra_km_packs))
    if addons.delivery:
        selected.append(('delivery', Rule.FLAT, 'delivery', 1))
    if addons.child_seats:
        selected.append(('child_seats', Rule.PER_DAY, 'child_seat', addons.child_seats * days))
    if addons.navigation:
        selected.append(('navigation', Rule.PER_DAY, 'navigation', days))
    if addons.insurance:
        selected.append((f'insurance_{addons.insurance}', Rule.PER_DAY, f'insurance_{addons.insurance}', days))

    lines = []
    for code, rule, price_key, quantity in selected:
        unit_price = prices[price_key]
        lines.append(
            PriceLine(
                code=code,
                rule=rule,
                unit_price=unit_price,
                quantity=quantity,
                amount=(unit_price * quantity).quantize(CENTS),
            )
        )
    return lines


def price(daily_rate: Decimal, start: date, end: date, addons: AddonSelection | None = None) -> PriceQuote:
    """Price a rental of ``[start, end)`` at ``daily_rate`` with the selected extras."""
    days = whole_days_between(start, end)
    if days <= 0:
        raise InvalidRange('Drop-off date must be after pick-up date.')

    rate = Decimal(str(daily_rate))
    base = (rate * days).quantize(CENTS)
    lines = addon_lines(addons or AddonSelection(), days)
    addons_total = sum((line.amount for line in lines), Decimal('0.00')).quantize(CENTS)
    return PriceQuote(
        days=days,
        daily_rate=rate,
        base=base,
        addons_total=addons_total,
        total=(base + addons_total).quantize(CENTS),
        lines=tuple(lines),
    )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)


def _as_int(value: Any, name: str) -> int:
    if value in (None, '', False):
        return 0
    if value is True:
        return 1
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAddons(f'Add-on "{name}" must be a whole number.')
    if number != number.to_integral_value():
        raise InvalidAddons(f'Add-on "{name}" must be a whole number.')
    return int(number)
