from datetime import date
from typing import Literal

from pydantic import BaseModel, EmailStr

from backend.schemas.lab import CamelModel

# Admin accounts are provisioned out of band, never through self-registration.
RegistrableRole = Literal["Doctor", "Nurse", "Technician", "Receptionist", "Patient"]


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    role: RegistrableRole = "Patient"
    gender: Literal["Male", "Female", "Other"] | None = None
    date_of_birth: date | None = None
    department: str | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    gender: str | None = None
    department: str | None = None


class AuthResponse(BaseModel):
    success: bool = True
    token: str
    user: UserResponse
