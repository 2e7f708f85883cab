from typing import Optional

from pydantic import BaseModel, Field, conlist

from .constants import MAX_COMPETITOR_URLS


class PlatformSelection(BaseModel):
    platform: str = Field(..., min_length=1)


class ProductInputUpdate(BaseModel):
    product_url: Optional[str] = None
    title: Optional[str] = None
    price: Optional[str] = None
    description: Optional[str] = None
    competitor_urls: Optional[conlist(str, max_length=MAX_COMPETITOR_URLS)] = None
    competitor_info: Optional[str] = None
    core_features: Optional[str] = None
