"""
Proposal totals calculator

Pure pricing arithmetic: no database, clock or randomness. Business-rule
validation (unknown package ids, negative acreage, ...) is the caller's job;
this module only guarantees a well-defined, non-negative result.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Mapping, Optional

from ...config import DEPOSIT_RATE, SALES_TAX_RATE
from .schemas import ComputedTotals, LineItem, ProposalInputs

CENT = Decimal("0.01")

# Quantities and rates are capped here so every product quantizes to cents exactly
MAX_FACTOR = Decimal("1e12")
WORKING_PRECISION = 60

# ZIP codes outside the central Florida base that always fall in the far zone
FAR_ZONE_ZIPS = frozenset({"32601", "32608", "34711", "34736", "33881"})

FALLBACK_PACKAGE_ID = "medium"


@dataclass(frozen=True)
class PricingPolicy:
    deposit_rate: float = DEPOSIT_RATE
    obstacle_rate: float = 0.05  # per obstacle, applied to the package base price
    far_zone_threshold_miles: float = 60.0
    far_zone_rate: float = 0.15
    tax_rate: float = SALES_TAX_RATE


DEFAULT_POLICY = PricingPolicy()


@dataclass(frozen=True)
class PackageLookup:
    """Result of resolving a package id: the package used and whether it was a fallback"""

    package: Optional[Mapping[str, Any]]
    is_fallback: bool


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _non_negative(value) -> Decimal:
    """Finite value clamped to [0, MAX_FACTOR]; NaN, infinities and junk become 0"""
    try:
        amount = Decimal(str(value or 0))
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite() or amount <= 0:
        return Decimal("0")
    return min(amount, MAX_FACTOR)


def lookup_package(
    package_catalog: Mapping[str, Mapping[str, Any]], package_id: Optional[str]
) -> PackageLookup:
    """
    Resolve a package id against a catalog.

    Fallback order on a miss: the package flagged isDefault, then "medium",
    then the first package by id. An empty catalog yields no package.
    """
    if package_id and package_id in package_catalog:
        return PackageLookup(package_catalog[package_id], False)

    for key in sorted(package_catalog):
        if package_catalog[key].get("isDefault"):
            return PackageLookup(package_catalog[key], True)

    if FALLBACK_PACKAGE_ID in package_catalog:
        return PackageLookup(package_catalog[FALLBACK_PACKAGE_ID], True)

    if package_catalog:
        return PackageLookup(package_catalog[sorted(package_catalog)[0]], True)

    return PackageLookup(None, True)


def is_far_zone(inputs: ProposalInputs, policy: PricingPolicy = DEFAULT_POLICY) -> bool:
    """Step function: either the job is in the far zone or it is not"""
    if inputs.zipCode and inputs.zipCode.strip() in FAR_ZONE_ZIPS:
        return True
    if inputs.distanceMiles is not None:
        return inputs.distanceMiles > policy.far_zone_threshold_miles
    return False


def compute_totals(
    inputs: ProposalInputs,
    package_catalog: Mapping[str, Mapping[str, Any]],
    service_catalog: Mapping[str, Mapping[str, Any]],
    policy: PricingPolicy = DEFAULT_POLICY,
) -> ComputedTotals:
    """Map inputs + catalogs to subtotal, surcharges, deposit and total"""
    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        return _compute_totals(inputs, package_catalog, service_catalog, policy)


def _compute_totals(
    inputs: ProposalInputs,
    package_catalog: Mapping[str, Mapping[str, Any]],
    service_catalog: Mapping[str, Mapping[str, Any]],
    policy: PricingPolicy,
) -> ComputedTotals:
    acreage = _non_negative(inputs.acreage)
    lookup = lookup_package(package_catalog, inputs.packageId)
    package = lookup.package or {}

    price_per_acre = _non_negative(package.get("pricePerAcre"))
    package_label = package.get("label", "Standard")
    breakdown: list[LineItem] = []

    base_price = _money(acreage * price_per_acre)
    breakdown.append(
        LineItem(
            serviceId="package-mulching",
            serviceName=f"{package_label} Forestry Mulching",
            description=(
                f"{package.get('description', '')} "
                f"({acreage} acres × ${price_per_acre}/acre)"
            ).strip(),
            quantity=float(acreage),
            rate=float(price_per_acre),
            total=float(base_price),
        )
    )
    subtotal = base_price

    for service_id in inputs.selectedServiceIds:
        service = service_catalog.get(service_id)
        if not service or not service.get("isActive", True):
            continue

        rate = _non_negative(service.get("defaultRate"))
        quantity = acreage if service.get("unit") == "per_acre" else Decimal("1")
        line_total = _money(quantity * rate)

        breakdown.append(
            LineItem(
                serviceId=service_id,
                serviceName=service.get("name", service_id),
                description=service.get("description", ""),
                quantity=float(quantity),
                rate=float(rate),
                total=float(line_total),
            )
        )
        subtotal += line_total

    for index, custom in enumerate(inputs.customServices):
        quantity = _non_negative(custom.quantity)
        rate = _non_negative(custom.rate)
        line_total = _money(quantity * rate)

        breakdown.append(
            LineItem(
                serviceId=f"custom-{index + 1}",
                serviceName=custom.name,
                description=custom.description,
                quantity=float(quantity),
                rate=float(rate),
                total=float(line_total),
            )
        )
        subtotal += line_total

    obstacle_adjustment = _money(
        base_price * Decimal(str(policy.obstacle_rate)) * len(inputs.obstacles)
    )
    travel_surcharge = (
        _money(base_price * Decimal(str(policy.far_zone_rate)))
        if is_far_zone(inputs, policy)
        else Decimal("0.00")
    )
    surcharges = obstacle_adjustment + travel_surcharge

    tax = _money((subtotal + surcharges) * Decimal(str(policy.tax_rate)))
    total = subtotal + surcharges + tax
    deposit = _money(total * Decimal(str(policy.deposit_rate)))

    return ComputedTotals(
        subtotal=float(subtotal),
        obstacleAdjustment=float(obstacle_adjustment),
        travelSurcharge=float(travel_surcharge),
        surcharges=float(surcharges),
        tax=float(tax),
        total=float(total),
        depositAmount=float(deposit),
        balance=float(total - deposit),
        pricePerAcre=float(price_per_acre),
        packageId=package.get("id"),
        packageDbh=package.get("dbh", ""),
        packageFallback=lookup.is_fallback,
        breakdown=breakdown,
    )


def dollars_to_cents(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
