"""
Domain model for catalog products.

This module contains the Product aggregate, its lifecycle transitions and the
read-side views composed from products and the users that touched them.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from .errors import DomainValidationError, InvalidStatusTransitionError
from .value_objects import Actor, format_gtin, get_gtin_validation_error


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ProductStatus(str, Enum):
    """Product lifecycle status."""

    PENDING = "pending"
    PUBLISHED = "published"


class WeightUnit(str, Enum):
    """Units accepted for net weight."""

    G = "g"
    KG = "kg"
    ML = "ml"
    L = "l"
    OZ = "oz"
    LB = "lb"


MIN_NET_WEIGHT = 0.01

REQUIRED_TEXT_FIELDS = ("name", "description", "brand", "manufacturer")

# Only changed through the lifecycle transitions, never through patches.
CONTROL_FIELDS = frozenset({"status", "created_by", "approved_by", "approved_at"})

IMMUTABLE_FIELDS = frozenset({"id", "gtin", "created_at", "updated_at"})

DESCRIPTIVE_FIELDS = REQUIRED_TEXT_FIELDS + ("net_weight", "net_weight_unit")

PATCHABLE_FIELDS = frozenset(DESCRIPTIVE_FIELDS)


@dataclass
class Product:
    """
    Product is the aggregate root of the catalog.

    Attributes:
        gtin: GS1 identity code, digits only. Immutable and unique.
        name: Product name.
        description: Product description.
        brand: Brand name.
        manufacturer: Manufacturer name.
        net_weight: Net weight (>= 0.01).
        net_weight_unit: Unit of the net weight.
        created_by: ID of the creating user.
        status: Lifecycle status.
        approved_by: ID of the approving user, if published.
        approved_at: Approval timestamp, if published.
        id: Storage identifier.
        created_at: Timestamp of creation.
        updated_at: Timestamp of last update.
    """
    gtin: str
    name: str
    description: str
    brand: str
    manufacturer: str
    net_weight: float
    net_weight_unit: WeightUnit
    created_by: str
    status: ProductStatus = ProductStatus.PENDING
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        """Validate domain invariants after initialization."""
        self._validate()

    def _validate(self) -> None:
        """
        Validate and normalize domain invariants.

        Raises:
            DomainValidationError: If validation fails.
        """
        error = get_gtin_validation_error(self.gtin)
        if error:
            raise DomainValidationError(error)
        self.gtin = format_gtin(self.gtin)

        for name in REQUIRED_TEXT_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise DomainValidationError(f"{name} is required")
            setattr(self, name, value.strip())

        if isinstance(self.net_weight, bool) or not isinstance(self.net_weight, (int, float)):
            raise DomainValidationError("net_weight must be a number")
        if self.net_weight < MIN_NET_WEIGHT:
            raise DomainValidationError(f"net_weight must be >= {MIN_NET_WEIGHT}")
        self.net_weight = float(self.net_weight)

        try:
            self.net_weight_unit = WeightUnit(self.net_weight_unit)
        except ValueError:
            allowed = ", ".join(u.value for u in WeightUnit)
            raise DomainValidationError(f"net_weight_unit must be one of: {allowed}")

        try:
            self.status = ProductStatus(self.status)
        except ValueError:
            raise DomainValidationError(f"Unknown status '{self.status}'")

        if not self.created_by:
            raise DomainValidationError("created_by is required")

        if (self.approved_by is None) != (self.approved_at is None):
            raise DomainValidationError("approved_by and approved_at must be set together")
        if self.status == ProductStatus.PENDING and self.approved_by is not None:
            raise DomainValidationError("A pending product cannot have an approver")

    @classmethod
    def create(cls, data: dict[str, Any], actor: Actor) -> "Product":
        """
        Build a new product for an actor.

        Elevated actors publish directly and become the approver; everyone
        else starts in pending. Control and immutable fields in `data` are
        ignored.

        Args:
            data: Descriptive product fields plus the GTIN.
            actor: Creating actor.

        Returns:
            New, validated Product.

        Raises:
            DomainValidationError: If a field is missing or invalid.
        """
        fields = strip_patch(data)
        for name in DESCRIPTIVE_FIELDS:
            if name not in fields:
                raise DomainValidationError(f"{name} is required")

        now = utcnow()
        if actor.is_elevated:
            return cls(
                gtin=data.get("gtin"),
                created_by=actor.id,
                status=ProductStatus.PUBLISHED,
                approved_by=actor.id,
                approved_at=now,
                created_at=now,
                updated_at=now,
                **fields,
            )
        return cls(
            gtin=data.get("gtin"),
            created_by=actor.id,
            created_at=now,
            updated_at=now,
            **fields,
        )

    @property
    def is_published(self) -> bool:
        """Whether the product is visible to everyone and indexed."""
        return self.status == ProductStatus.PUBLISHED

    def is_owned_by(self, actor: Optional[Actor]) -> bool:
        """Return True if the actor created this product."""
        return actor is not None and self.created_by == actor.id

    def approve(self, approver_id: str) -> None:
        """
        Move the product from pending to published.

        Args:
            approver_id: ID of the approving user.

        Raises:
            InvalidStatusTransitionError: If the product is not pending.
        """
        if self.status != ProductStatus.PENDING:
            raise InvalidStatusTransitionError(
                self.gtin, self.status.value, ProductStatus.PUBLISHED.value
            )

        now = utcnow()
        self.status = ProductStatus.PUBLISHED
        self.approved_by = approver_id
        self.approved_at = now
        self.updated_at = now

    def apply_patch(self, patch: dict[str, Any]) -> "Product":
        """
        Return a re-validated copy with the patch applied.

        Args:
            patch: Field updates. Control, immutable and unknown keys are dropped.

        Returns:
            Patched Product. The original is left untouched.

        Raises:
            DomainValidationError: If the patched product is invalid.
        """
        return replace(self, **strip_patch(patch), updated_at=utcnow())

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a snapshot dictionary.

        Timestamps are kept as datetimes so that snapshots compare by instant;
        serialization happens at the storage and transport boundaries.

        Returns:
            Dictionary with all product data.
        """
        return {
            "id": str(self.id),
            "gtin": self.gtin,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "manufacturer": self.manufacturer,
            "net_weight": self.net_weight,
            "net_weight_unit": self.net_weight_unit.value,
            "status": self.status.value,
            "created_by": self.created_by,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def strip_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Keep only the descriptive fields a caller is allowed to set."""
    return {key: value for key, value in patch.items() if key in PATCHABLE_FIELDS}


@dataclass(frozen=True)
class UserRef:
    """Read-only user record used to expand creator and approver references."""

    id: str
    name: str
    email: str
    role: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary representation."""
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}


@dataclass
class ProductDetails:
    """
    Denormalized product view.

    Attributes:
        product: The product.
        created_by: Creator record, if it could be resolved.
        approved_by: Approver record, if any.
        history: Most recent audit entries, newest first (detail view only).
    """
    product: Product
    created_by: Optional[UserRef] = None
    approved_by: Optional[UserRef] = None
    history: list = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Product snapshot with the user references expanded."""
        data = self.product.to_dict()
        data["created_by"] = _expand_user(self.product.created_by, self.created_by)
        data["approved_by"] = _expand_user(self.product.approved_by, self.approved_by)
        return data


def _expand_user(user_id: Optional[str], ref: Optional[UserRef]) -> Optional[dict[str, Any]]:
    if user_id is None:
        return None
    if ref is None:
        return {"id": user_id, "name": None, "email": None, "role": None}
    return ref.to_dict()
