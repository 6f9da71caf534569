"""
DTOs -- Immutable record views passed between persistence and engines.

Responsibility:
    Defines the status enums of every settlement entity and the frozen
    record types that engines consume. Selectors build these from ORM rows;
    engines never see an ORM object.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() converters exist only for the service/selector layer.

Invariants enforced:
    - Monetary fields are Decimal. Engine-facing views validate their
      numeric ranges in __post_init__ so malformed data fails at the
      boundary instead of inside a calculation.
    - Direction is Optional: None means "not tracked", which is distinct
      from a known INBOUND or OUTBOUND.

Failure modes:
    - ValueError on negative quantities or inverted tier bounds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from settlement_kernel.models.billing_cycle import BillingCycle as BillingCycleModel
    from settlement_kernel.models.commitment import VolumeCommitment as CommitmentModel
    from settlement_kernel.models.credit import CreditProfile as CreditProfileModel
    from settlement_kernel.models.invoice import Invoice as InvoiceModel
    from settlement_kernel.models.partner import Partner as PartnerModel
    from settlement_kernel.models.pricelist import CarrierRate as CarrierRateModel
    from settlement_kernel.models.rate_sheet import Rate as RateModel
    from settlement_kernel.models.usage import UsageRecord as UsageRecordModel


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ServiceType(str, Enum):
    VOICE = "VOICE"
    SMS = "SMS"
    DATA = "DATA"


class Direction(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class RoundingRule(str, Enum):
    """How voice seconds become billable minutes."""

    UP = "UP"  # ceil to next whole minute
    DOWN = "DOWN"  # floor to whole minute
    NEAREST = "NEAREST"  # half-up to nearest minute
    NONE = "NONE"  # fractional minutes, no rounding


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    RATED = "RATED"
    FAILED = "FAILED"


class PartnerType(str, Enum):
    VENDOR = "VENDOR"
    CUSTOMER = "CUSTOMER"
    RECIPROCAL = "RECIPROCAL"
    CARRIER = "CARRIER"
    MVNO = "MVNO"


class PartnerStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class AgreementStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class PolicyStatus(str, Enum):
    DRAFT = "DRAFT"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    ACTIVE = "ACTIVE"


class CycleCadence(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    CUSTOM = "CUSTOM"


class CycleStatus(str, Enum):
    """
    Billing cycle lifecycle.

    OPEN -> PROCESSING -> CLOSED -> INVOICED, with PROCESSING -> OPEN on
    reset or failed aggregation.
    """

    OPEN = "OPEN"
    PROCESSING = "PROCESSING"
    CLOSED = "CLOSED"
    INVOICED = "INVOICED"


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    ISSUED = "ISSUED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


# Statuses that count toward a partner's credit exposure.
OUTSTANDING_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset(
    {InvoiceStatus.PENDING, InvoiceStatus.OVERDUE}
)

# Statuses that accept payments.
PAYABLE_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset(
    {
        InvoiceStatus.ISSUED,
        InvoiceStatus.PENDING,
        InvoiceStatus.PARTIALLY_PAID,
        InvoiceStatus.OVERDUE,
    }
)


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    WIRE = "WIRE"
    NETTING = "NETTING"
    CHECK = "CHECK"
    OTHER = "OTHER"


class PricelistStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SUPERSEDED = "SUPERSEDED"


class FileStatus(str, Enum):
    UPLOADED = "UPLOADED"
    PARSING = "PARSING"
    PARSED = "PARSED"
    RATED = "RATED"
    ERROR = "ERROR"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class CommitmentType(str, Enum):
    VOLUME = "VOLUME"
    REVENUE = "REVENUE"
    VOLUME_AND_REVENUE = "VOLUME_AND_REVENUE"


class DiscountAppliesTo(str, Enum):
    VOLUME = "VOLUME"
    REVENUE = "REVENUE"


class QualityRating(str, Enum):
    POOR = "POOR"
    FAIR = "FAIR"
    GOOD = "GOOD"
    EXCELLENT = "EXCELLENT"


# ---------------------------------------------------------------------------
# Record views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PartnerInfo:
    partner_id: UUID
    partner_code: str
    name: str
    partner_type: PartnerType
    status: PartnerStatus
    country: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PartnerStatus.ACTIVE

    @classmethod
    def from_model(cls, model: PartnerModel) -> PartnerInfo:
        return cls(
            partner_id=model.id,
            partner_code=model.partner_code,
            name=model.name,
            partner_type=PartnerType(model.partner_type),
            status=PartnerStatus(model.status),
            country=model.country,
        )


@dataclass(frozen=True)
class UsageRecordInfo:
    """
    One usage record (TAP record or CDR) as the engines see it.

    Only the quantity field for the record's service type is meaningful:
    ``duration_seconds`` for VOICE, ``message_count`` for SMS,
    ``data_volume_mb`` for DATA.
    """

    record_id: UUID
    partner_id: UUID
    service_type: ServiceType
    event_time: datetime
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    direction: Direction | None = None
    calling_number: str | None = None
    called_number: str | None = None
    duration_seconds: int | None = None
    message_count: int | None = None
    data_volume_mb: Decimal | None = None
    charged_amount: Decimal | None = None
    currency: str | None = None
    file_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.data_volume_mb is not None and not isinstance(self.data_volume_mb, Decimal):
            object.__setattr__(self, "data_volume_mb", Decimal(str(self.data_volume_mb)))
        if self.charged_amount is not None and not isinstance(self.charged_amount, Decimal):
            object.__setattr__(self, "charged_amount", Decimal(str(self.charged_amount)))

    @property
    def is_rated(self) -> bool:
        return self.processing_status == ProcessingStatus.RATED

    @classmethod
    def from_model(cls, model: UsageRecordModel) -> UsageRecordInfo:
        return cls(
            record_id=model.id,
            partner_id=model.partner_id,
            service_type=ServiceType(model.service_type),
            event_time=model.event_time,
            processing_status=ProcessingStatus(model.processing_status),
            direction=Direction(model.direction) if model.direction else None,
            calling_number=model.calling_number,
            called_number=model.called_number,
            duration_seconds=model.duration_seconds,
            message_count=model.message_count,
            data_volume_mb=model.data_volume_mb,
            charged_amount=model.charged_amount,
            currency=model.currency,
            file_id=model.file_id,
        )


@dataclass(frozen=True)
class RateInfo:
    """
    A single rate-sheet entry.

    ``destination_prefix`` of "" is the catch-all. The tier interval is
    half-open [tier_start, tier_end) over billable units; a None bound is
    unbounded on that side.
    """

    rate_id: UUID
    service_type: ServiceType
    rate_per_unit: Decimal
    currency: str
    direction: Direction | None = None
    destination_prefix: str = ""
    minimum_charge: Decimal | None = None
    rounding_rule: RoundingRule | None = None
    tier_start: Decimal | None = None
    tier_end: Decimal | None = None

    def __post_init__(self) -> None:
        if self.rate_per_unit < 0:
            raise ValueError(f"rate_per_unit cannot be negative: {self.rate_per_unit}")
        if self.minimum_charge is not None and self.minimum_charge < 0:
            raise ValueError(f"minimum_charge cannot be negative: {self.minimum_charge}")
        if (
            self.tier_start is not None
            and self.tier_end is not None
            and self.tier_end <= self.tier_start
        ):
            raise ValueError(
                f"tier_end ({self.tier_end}) must be greater than "
                f"tier_start ({self.tier_start})"
            )

    @classmethod
    def from_model(cls, model: RateModel) -> RateInfo:
        return cls(
            rate_id=model.id,
            service_type=ServiceType(model.service_type),
            rate_per_unit=model.rate_per_unit,
            currency=model.currency,
            direction=Direction(model.direction) if model.direction else None,
            destination_prefix=model.destination_prefix or "",
            minimum_charge=model.minimum_charge,
            rounding_rule=RoundingRule(model.rounding_rule) if model.rounding_rule else None,
            tier_start=model.tier_start,
            tier_end=model.tier_end,
        )


@dataclass(frozen=True)
class CarrierRateInfo:
    """A carrier pricelist entry joined with its pricelist and carrier."""

    carrier_rate_id: UUID
    carrier_id: UUID
    carrier_name: str
    carrier_status: PartnerStatus
    pricelist_id: UUID
    pricelist_status: PricelistStatus
    effective_date: date
    destination_code: str
    rate_per_minute: Decimal
    currency: str
    expiry_date: date | None = None
    destination_name: str | None = None
    billing_increment: int = 60
    asr: Decimal | None = None
    acd: Decimal | None = None
    peak_rate: Decimal | None = None
    off_peak_rate: Decimal | None = None

    @classmethod
    def from_model(cls, model: CarrierRateModel) -> CarrierRateInfo:
        pricelist = model.pricelist
        carrier = pricelist.carrier
        return cls(
            carrier_rate_id=model.id,
            carrier_id=carrier.id,
            carrier_name=carrier.name,
            carrier_status=PartnerStatus(carrier.status),
            pricelist_id=pricelist.id,
            pricelist_status=PricelistStatus(pricelist.status),
            effective_date=pricelist.effective_date,
            expiry_date=pricelist.expiry_date,
            destination_code=model.destination_code,
            destination_name=model.destination_name,
            rate_per_minute=model.rate_per_minute,
            currency=pricelist.currency,
            billing_increment=model.billing_increment,
            asr=model.asr,
            acd=model.acd,
            peak_rate=model.peak_rate,
            off_peak_rate=model.off_peak_rate,
        )


@dataclass(frozen=True)
class BillingCycleInfo:
    cycle_id: UUID
    partner_id: UUID
    cycle_number: int
    period_start: date
    period_end: date
    cut_off_date: date
    due_date: date
    status: CycleStatus
    currency: str
    version: int = 0
    invoice_id: UUID | None = None
    total_voice_minutes: int | None = None
    total_sms_count: int | None = None
    total_data_mb: Decimal | None = None
    total_charges: Decimal | None = None
    total_cost: Decimal | None = None
    margin: Decimal | None = None
    closed_at: datetime | None = None

    @classmethod
    def from_model(cls, model: BillingCycleModel) -> BillingCycleInfo:
        return cls(
            cycle_id=model.id,
            partner_id=model.partner_id,
            cycle_number=model.cycle_number,
            period_start=model.period_start,
            period_end=model.period_end,
            cut_off_date=model.cut_off_date,
            due_date=model.due_date,
            status=CycleStatus(model.status),
            currency=model.currency,
            version=model.version,
            invoice_id=model.invoice_id,
            total_voice_minutes=model.total_voice_minutes,
            total_sms_count=model.total_sms_count,
            total_data_mb=model.total_data_mb,
            total_charges=model.total_charges,
            total_cost=model.total_cost,
            margin=model.margin,
            closed_at=model.closed_at,
        )


@dataclass(frozen=True)
class InvoiceInfo:
    invoice_id: UUID
    invoice_number: str
    partner_id: UUID
    status: InvoiceStatus
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    due_date: date
    cycle_id: UUID | None = None
    issue_date: date | None = None
    paid_date: date | None = None
    amount_paid: Decimal = Decimal("0")

    @property
    def outstanding_balance(self) -> Decimal:
        return self.total_amount - self.amount_paid

    @classmethod
    def from_model(cls, model: InvoiceModel) -> InvoiceInfo:
        return cls(
            invoice_id=model.id,
            invoice_number=model.invoice_number,
            partner_id=model.partner_id,
            status=InvoiceStatus(model.status),
            subtotal=model.subtotal,
            tax_amount=model.tax_amount,
            total_amount=model.total_amount,
            currency=model.currency,
            due_date=model.due_date,
            cycle_id=model.cycle_id,
            issue_date=model.issue_date,
            paid_date=model.paid_date,
            amount_paid=model.amount_paid,
        )


@dataclass(frozen=True)
class CreditProfileInfo:
    partner_id: UUID
    credit_limit: Decimal
    currency: str
    payment_terms_days: int = 30
    surcharge_category: str | None = None
    surcharge_rate: Decimal = Decimal("0")
    surcharge_trigger_days: int = 0
    bank_guarantee_amount: Decimal | None = None
    bank_guarantee_expiry: date | None = None
    status: str = "ACTIVE"

    def __post_init__(self) -> None:
        if self.surcharge_rate < 0:
            raise ValueError(f"surcharge_rate cannot be negative: {self.surcharge_rate}")
        if self.surcharge_trigger_days < 0:
            raise ValueError("surcharge_trigger_days cannot be negative")

    @classmethod
    def from_model(cls, model: CreditProfileModel) -> CreditProfileInfo:
        return cls(
            partner_id=model.partner_id,
            credit_limit=model.credit_limit,
            currency=model.currency,
            payment_terms_days=model.payment_terms_days,
            surcharge_category=model.surcharge_category,
            surcharge_rate=model.surcharge_rate,
            surcharge_trigger_days=model.surcharge_trigger_days,
            bank_guarantee_amount=model.bank_guarantee_amount,
            bank_guarantee_expiry=model.bank_guarantee_expiry,
            status=model.status,
        )


@dataclass(frozen=True)
class DiscountTierInfo:
    """Half-open band [from_volume, to_volume); None means unbounded."""

    from_volume: Decimal | None
    to_volume: Decimal | None
    discount_percentage: Decimal | None = None
    rate_adjustment: Decimal | None = None
    tier_order: int = 0

    def contains(self, value: Decimal) -> bool:
        lower = self.from_volume if self.from_volume is not None else Decimal("0")
        if value < lower:
            return False
        return self.to_volume is None or value < self.to_volume


@dataclass(frozen=True)
class DiscountSchemeInfo:
    scheme_id: UUID
    name: str
    applies_to: DiscountAppliesTo
    tiers: tuple[DiscountTierInfo, ...] = ()


@dataclass(frozen=True)
class CommitmentInfo:
    commitment_id: UUID
    partner_id: UUID
    commitment_type: CommitmentType
    start_date: date
    end_date: date
    currency: str = "USD"
    committed_volume_minutes: Decimal | None = None
    committed_revenue: Decimal | None = None
    penalty_rate: Decimal | None = None
    destination_prefixes: tuple[str, ...] = ()
    discount_scheme: DiscountSchemeInfo | None = None

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date}) precedes start_date ({self.start_date})"
            )

    @classmethod
    def from_model(cls, model: CommitmentModel) -> CommitmentInfo:
        scheme = None
        if model.discount_scheme is not None:
            s = model.discount_scheme
            scheme = DiscountSchemeInfo(
                scheme_id=s.id,
                name=s.name,
                applies_to=DiscountAppliesTo(s.applies_to),
                tiers=tuple(
                    DiscountTierInfo(
                        from_volume=t.from_volume,
                        to_volume=t.to_volume,
                        discount_percentage=t.discount_percentage,
                        rate_adjustment=t.rate_adjustment,
                        tier_order=t.tier_order,
                    )
                    for t in sorted(s.tiers, key=lambda t: t.tier_order)
                ),
            )
        prefixes = tuple(
            p.strip() for p in (model.destination_prefixes or "").split(",") if p.strip()
        )
        return cls(
            commitment_id=model.id,
            partner_id=model.partner_id,
            commitment_type=CommitmentType(model.commitment_type),
            start_date=model.start_date,
            end_date=model.end_date,
            currency=model.currency,
            committed_volume_minutes=model.committed_volume_minutes,
            committed_revenue=model.committed_revenue,
            penalty_rate=model.penalty_rate,
            destination_prefixes=prefixes,
            discount_scheme=scheme,
        )


@dataclass(frozen=True)
class QoSMetricInfo:
    destination: str
    metric_date: date
    asr: Decimal
    acd: Decimal
    total_calls: int
    carrier_id: UUID | None = None
    ner: Decimal | None = None
    pdd: Decimal | None = None


@dataclass(frozen=True)
class UsageFileInfo:
    file_id: UUID
    file_name: str
    status: FileStatus
    record_count: int = 0
    error_message: str | None = None
