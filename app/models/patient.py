from datetime import date

from pydantic import BaseModel, Field


class PatientCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: date
    notes: str | None = Field(None, max_length=1000)


class PatientResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    date_of_birth: date
    notes: str | None = None
    created_at: str
