import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from ..constants import ANNUAL_FEE, MemberStatus, Role
from ..models.records import PaymentRecord, find_duplicate_years, is_valid_member_number


# --- Auth / users ---


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    role: Role


class TokenRefreshRequest(BaseModel):
    refresh_token: str


class UserCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None
    password: str = Field(min_length=8)
    role: Role = Role.MEMBER
    member_number: Optional[str] = None
    is_active: bool = True

    @field_validator("member_number")
    @classmethod
    def _check_member_number(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_member_number(value):
            raise ValueError("member_number must look like GM<year><4 digits>")
        return value


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: Role
    is_active: bool
    member_number: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: dt.datetime


class UserSelfUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1)


class UserApproval(BaseModel):
    is_active: bool


class MemberLink(BaseModel):
    member_number: Optional[str] = None

    @field_validator("member_number")
    @classmethod
    def _check_member_number(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_member_number(value):
            raise ValueError("member_number must look like GM<year><4 digits>")
        return value


class ProfilePictureUpdate(BaseModel):
    profile_picture: Optional[str] = Field(default=None, max_length=2048)


class SystemFunctionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str


class NavigationRead(BaseModel):
    role: Role
    role_label: str
    tabs: List[str]
    functions: List[SystemFunctionRead]
    member_actions: List[str]


# --- Members & payments ---


class PaymentCreate(BaseModel):
    year: int = Field(ge=1900, le=2999)
    amount: Decimal = Field(default=ANNUAL_FEE, gt=0)
    date: Optional[dt.date] = None


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)
    date: Optional[dt.date] = None
    is_paid: Optional[bool] = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    year: int
    amount: Decimal
    date: Optional[dt.date] = None
    is_paid: bool


class MemberBase(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    date_of_birth: Optional[dt.date] = None


class MemberCreate(MemberBase):
    status: MemberStatus = MemberStatus.ACTIVE
    registration_year: Optional[int] = Field(default=None, ge=1900, le=2999)
    registration_date: Optional[dt.date] = None
    payments: List[PaymentCreate] = []

    @model_validator(mode="after")
    def _check_payments(self) -> "MemberCreate":
        records = [PaymentRecord(year=payment.year, amount=payment.amount) for payment in self.payments]
        duplicates = find_duplicate_years(records)
        if duplicates:
            raise ValueError(f"Duplicate payment years: {duplicates}")
        return self


class MemberUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    date_of_birth: Optional[dt.date] = None
    registration_year: Optional[int] = Field(default=None, ge=1900, le=2999)


class MemberStatusUpdate(BaseModel):
    status: MemberStatus


class MemberFilesUpdate(BaseModel):
    health_certificate: Optional[str] = Field(default=None, max_length=2048)


class MemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_number: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    status: MemberStatus
    date_of_birth: Optional[dt.date] = None
    registration_year: int
    registration_date: Optional[dt.date] = None
    profile_picture: Optional[str] = None
    health_certificate: Optional[str] = None
    delinquent_years: int
    total_delinquent_amount: Decimal


class MemberListItem(MemberRead):
    latest_payment: Optional[PaymentRead] = None


class MemberDetail(MemberRead):
    payments: List[PaymentRead] = []
    unpaid_years: List[int] = []


class RecomputeResult(BaseModel):
    updated: int


# --- Officers, milestones, bulletin ---


class OfficerBase(BaseModel):
    name: str = Field(min_length=1)
    position: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    member_id: Optional[int] = None


class OfficerCreate(OfficerBase):
    pass


class OfficerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    position: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    member_id: Optional[int] = None


class OfficerRead(OfficerBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class MilestoneBase(BaseModel):
    age: int = Field(ge=0, le=150)
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1)
    is_active: bool = True


class MilestoneUpdate(BaseModel):
    age: Optional[int] = Field(default=None, ge=0, le=150)
    amount: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None


class MilestoneRead(MilestoneBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class BulletinPostCreate(BaseModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)
    date: Optional[dt.date] = None
    is_active: bool = True


class BulletinPostUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None


class BulletinPostRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    author: str
    date: dt.date
    is_active: bool


# --- Activity & reports ---


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: dt.datetime
    activity_type: str
    description: str
    actor_name: Optional[str] = None
    target_entity_type: Optional[str] = None
    target_entity_id: Optional[str] = None


class ReportSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    by_status: Dict[str, int]
    delinquent_members: int
    total_delinquent_years: int
    total_collectibles: Decimal
    expected_annual_fees: Decimal


class YearPaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    year: int
    amount: Decimal
    date: Optional[dt.date] = None
    is_paid: bool


class PaymentHistoryRowRead(BaseModel):
    member_number: str
    name: str
    status: MemberStatus
    total_paid: Decimal
    years_paid: int
    payments: List[YearPaymentRead]


class PaymentHistoryRead(BaseModel):
    start_year: int
    end_year: int
    grand_total: Decimal
    rows: List[PaymentHistoryRowRead]
