from typing import Optional
from pydantic import BaseModel


class SettingsResponse(BaseModel):
    logo: Optional[str] = None


class VerifyRequest(BaseModel):
    password: str
