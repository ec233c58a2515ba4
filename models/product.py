from pydantic import BaseModel, Field
from typing import Optional, List


class UnitRef(BaseModel):
    id: int
    name: Optional[str] = None
    is_base: bool = False


class Measurement(BaseModel):
    """
    One row of a product's measurement table.
    number converts a physical measurement into purchase units.
    """
    from_unit: Optional[UnitRef] = None
    to_unit: Optional[UnitRef] = None
    number: Optional[float] = None


class Product(BaseModel):
    id: int
    product_name: str = ""
    barcode: Optional[str] = None
    available_units: List[UnitRef] = Field(default_factory=list)
    measurement: List[Measurement] = Field(default_factory=list)

    def find_unit(self, unit_id: int) -> Optional[UnitRef]:
        return next((u for u in self.available_units if u.id == unit_id), None)
