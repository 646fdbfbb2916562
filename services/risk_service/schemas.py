from typing import Optional
from pydantic import BaseModel


class PhoneLookupRequest(BaseModel):
    phone: Optional[str] = None
