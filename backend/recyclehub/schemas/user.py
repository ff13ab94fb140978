from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

class UserCreate(BaseModel):
    name: str
    email: str
    password: str
    phone_number: Optional[str] = None
    roles: list[str] = Field(default_factory=lambda: ["vendor"])

class UserLogin(BaseModel):
    email: str
    password: str

class UserOut(BaseModel):
    id: int
    name: str
    email: str
    phone_number: Optional[str] = None
    roles: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserPasswordReset(BaseModel):
    password: str


class UserRolesUpdate(BaseModel):
    roles: list[str] = Field(default_factory=list)


class RoleOptionOut(BaseModel):
    code: str
    label: str


class UserProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None


class UserPasswordChange(BaseModel):
    current_password: str
    new_password: str
