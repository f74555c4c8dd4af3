from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR

from comercial.errors import ValidationError
from comercial.utils.money import to_decimal


@dataclass(frozen=True)
class BoxType:
    name: str
    max_weight_kg: Decimal
    length_cm: int
    width_cm: int
    height_cm: int

    @property
    def dimensions(self) -> str:
        return f"{self.length_cm}x{self.width_cm}x{self.height_cm}"

    def to_dict(self) -> dict:
        return {
            "type": self.name,
            "max_weight_kg": str(self.max_weight_kg),
            "dimensions": self.dimensions,
            "length_cm": self.length_cm,
            "width_cm": self.width_cm,
            "height_cm": self.height_cm,
        }


# Ascending by capacity; the last entry is the largest box used for splitting.
BOX_TABLE: tuple[BoxType, ...] = (
    BoxType("Cx 06", Decimal("2"), 20, 15, 10),
    BoxType("Cx 05", Decimal("5"), 30, 20, 15),
    BoxType("Cx 04", Decimal("10"), 40, 30, 20),
    BoxType("Cx 03", Decimal("15"), 45, 35, 25),
    BoxType("Cx 02", Decimal("20"), 50, 40, 30),
    BoxType("Cx 01", Decimal("30"), 60, 40, 40),
)


ROLE_SINGLE = "single"
ROLE_FULL = "full"
ROLE_REMAINDER = "remainder"


@dataclass(frozen=True)
class BoxAllocation:
    box: BoxType
    quantity: int
    role: str = ROLE_SINGLE

    def to_dict(self) -> dict:
        return {
            "type": self.box.name,
            "dimensions": self.box.dimensions,
            "quantity": int(self.quantity),
            "max_weight_kg": str(self.box.max_weight_kg),
            "role": self.role,
        }


@dataclass(frozen=True)
class PackingResult:
    weight_kg: Decimal
    boxes: tuple[BoxAllocation, ...]

    @property
    def total_volumes(self) -> int:
        return sum(b.quantity for b in self.boxes)

    @property
    def total_capacity_kg(self) -> Decimal:
        return sum((b.box.max_weight_kg * b.quantity for b in self.boxes), Decimal("0"))

    @property
    def full_boxes(self) -> int:
        return sum(b.quantity for b in self.boxes if b.role == ROLE_FULL)

    @property
    def is_multi_box(self) -> bool:
        return self.total_volumes > 1

    def to_dict(self) -> dict:
        payload = {
            "weight_kg": str(self.weight_kg),
            "total_volumes": self.total_volumes,
            "total_capacity_kg": str(self.total_capacity_kg),
            "multi_box": self.is_multi_box,
            "boxes": [b.to_dict() for b in self.boxes],
        }
        if len(self.boxes) == 1:
            payload["box"] = self.boxes[0].to_dict()
        else:
            payload["box"] = None
        return payload


def _validate_table(table: tuple[BoxType, ...]) -> None:
    if not table:
        raise ValidationError("box table is empty")
    previous = Decimal("0")
    for box in table:
        if box.max_weight_kg <= previous:
            raise ValidationError("box table must be strictly ascending", box=box.name)
        previous = box.max_weight_kg


def box_for_weight(weight_kg, table: tuple[BoxType, ...] = BOX_TABLE) -> BoxType:
    """Smallest box whose bracket holds the weight; the largest box above the top bracket."""
    weight = to_decimal(weight_kg)
    for box in table:
        if weight <= box.max_weight_kg:
            return box
    return table[-1]


def pack_weight(weight_kg, table: tuple[BoxType, ...] = BOX_TABLE) -> PackingResult:
    _validate_table(table)
    try:
        weight = to_decimal(weight_kg)
    except ValueError as exc:
        raise ValidationError("weight_kg must be numeric") from exc
    if weight <= 0:
        return PackingResult(weight_kg=weight, boxes=())

    max_box = table[-1]
    if weight <= max_box.max_weight_kg:
        return PackingResult(weight_kg=weight, boxes=(BoxAllocation(box_for_weight(weight, table), 1),))

    full_boxes = int((weight / max_box.max_weight_kg).to_integral_value(rounding=ROUND_FLOOR))
    remainder = weight - (max_box.max_weight_kg * full_boxes)

    # Remainder stays a separate line even when it maps to the max box type.
    allocations = [BoxAllocation(max_box, full_boxes, ROLE_FULL)]
    if remainder > 0:
        allocations.append(BoxAllocation(box_for_weight(remainder, table), 1, ROLE_REMAINDER))
    return PackingResult(weight_kg=weight, boxes=tuple(allocations))
