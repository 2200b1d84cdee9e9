from pydantic import BaseModel, Field


class MedicationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    generic_name: str | None = None
    strength: float | None = Field(None, gt=0)
    unit: str | None = None
    manufacturer: str | None = None
    description: str | None = None
    active: bool = True


class MedicationResponse(BaseModel):
    id: str
    name: str
    generic_name: str | None = None
    strength: float | None = None
    unit: str | None = None
    manufacturer: str | None = None
    description: str | None = None
    active: bool = True
    created_at: str
