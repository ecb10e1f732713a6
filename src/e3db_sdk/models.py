"""Record, query and client configuration schemas."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_API_URL = "https://api.e3db.com"
CONFIG_VERSION = 1
DEFAULT_PAGE_SIZE = 50


class Meta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    record_id: Optional[str] = None
    writer_id: str = ""
    user_id: str = ""
    type: str
    plain: Dict[str, str] = Field(default_factory=dict)
    created: Optional[str] = None
    last_modified: Optional[str] = None
    version: Optional[str] = None


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")

    meta: Meta
    data: Dict[str, str] = Field(default_factory=dict)


class Q(BaseModel):
    """Search filter. Empty lists leave that dimension unconstrained."""

    model_config = ConfigDict(extra="forbid")

    content_types: List[str] = Field(default_factory=list)
    record_ids: List[str] = Field(default_factory=list)
    writer_ids: List[str] = Field(default_factory=list)
    user_ids: List[str] = Field(default_factory=list)
    include_data: bool = False
    count: int = Field(DEFAULT_PAGE_SIZE, gt=0)

    def to_payload(self, *, after_index: int = 0) -> dict:
        payload: dict = {
            "include_data": self.include_data,
            "after_index": after_index,
            "count": self.count,
        }
        for field_name in ("content_types", "record_ids", "writer_ids", "user_ids"):
            values = getattr(self, field_name)
            if values:
                payload[field_name] = list(values)
        return payload


class RegistrationInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_id: str
    api_key_id: str
    api_secret: str
    client_email: str
    public_key: str
    private_key: str
    api_url: str = DEFAULT_API_URL


class ClientConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = CONFIG_VERSION
    client_id: str
    api_key_id: str
    api_secret: str
    client_email: str = ""
    public_key: str = ""
    private_key: str = ""
    api_url: str = DEFAULT_API_URL
    logging: bool = False

    @classmethod
    def from_registration(cls, info: RegistrationInfo) -> "ClientConfig":
        return cls(**info.model_dump())
