from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Union


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _as_text(value) -> Optional[str]:
    if value is None:
        return None
    return str(value)


class OTPRequest(BaseModel):
    email: Optional[str] = None


class OTPVerifyRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[Union[int, str]] = None


class ParticipantName(CamelModel):
    first_name: Optional[str] = Field(default="", alias="firstName")
    last_name: Optional[str] = Field(default="", alias="lastName")

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _as_text(value)


class TShirtOrder(CamelModel):
    size: Optional[str] = ""
    quantity: Optional[str] = ""

    @field_validator("size", "quantity", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _as_text(value)


class RegistrationPayload(CamelModel):
    email: Optional[str] = None
    names: List[ParticipantName] = []
    mobile: Optional[str] = ""
    tshirts: List[TShirtOrder] = []
    total_fee: Optional[str] = Field(default="", alias="totalFee")

    @field_validator("mobile", "total_fee", mode="before")
    @classmethod
    def coerce_text(cls, value):
        return _as_text(value)


class CheckinRequest(CamelModel):
    staff_name: Optional[str] = Field(default=None, alias="staffName")
    password: Optional[str] = None
    encrypted_email: Optional[str] = Field(default=None, alias="encryptedEmail")


class StaffLoginRequest(CamelModel):
    staff_name: Optional[str] = Field(default=None, alias="staffName")
    password: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class SaveResponse(BaseModel):
    message: str
    status: str  # "created" or "updated"
    email: str


class CheckinResponse(BaseModel):
    message: str
    status: str  # "redeemed" or "already_redeemed"
    name: str
    staffName: str
    timestamp: str


class StaffLoginResponse(BaseModel):
    message: str
    staffName: str
