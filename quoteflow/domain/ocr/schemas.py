"""Business card OCR schemas"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LocalizedText(BaseModel):
    zh: str = ""
    en: str = ""


class BusinessCardData(BaseModel):
    name: Optional[LocalizedText] = None
    company: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    address: Optional[LocalizedText] = None


class Base64ImageRequest(BaseModel):
    image: str = Field(..., min_length=1)

    @field_validator("image")
    @classmethod
    def strip_data_url(cls, v):
        # accept "data:image/png;base64,...." as well as the bare payload
        if v.startswith("data:") and "," in v:
            v = v.split(",", 1)[1]
        return v.strip()
