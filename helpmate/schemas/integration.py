"""
helpmate/schemas/integration.py

Purpose: Website integration payloads

- Widget branding settings
- Knowledge base URLs and documents
- Public widget chat request (with live page metadata)
"""

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Optional, List, Literal

from utils.constants import DEFAULT_WIDGET_SETTINGS
from utils.validation_utils import validate_domain, validate_hex_color

WidgetPosition = Literal["bottom-right", "bottom-left", "top-right", "top-left"]


def _check_color(v):
    if v is not None and not validate_hex_color(v):
        raise ValueError("primary_color must be a hex colour such as #4F46E5")
    return v


HexColor = Annotated[str, AfterValidator(_check_color)]


class WidgetSettings(BaseModel):
    primary_color: HexColor = DEFAULT_WIDGET_SETTINGS["primary_color"]
    position: WidgetPosition = DEFAULT_WIDGET_SETTINGS["position"]
    welcome_message: str = Field(default=DEFAULT_WIDGET_SETTINGS["welcome_message"], max_length=500)
    chat_title: str = Field(default=DEFAULT_WIDGET_SETTINGS["chat_title"], max_length=100)


class WidgetSettingsUpdate(BaseModel):
    primary_color: Optional[HexColor] = None
    position: Optional[WidgetPosition] = None
    welcome_message: Optional[str] = Field(default=None, max_length=500)
    chat_title: Optional[str] = Field(default=None, max_length=100)


class KnowledgeDocument(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    url: Optional[str] = None


class KnowledgeBase(BaseModel):
    enabled: bool = False
    urls: List[str] = Field(default_factory=list)
    documents: List[KnowledgeDocument] = Field(default_factory=list)


class KnowledgeBaseUpdate(BaseModel):
    enabled: Optional[bool] = None
    urls: Optional[List[str]] = None
    documents: Optional[List[KnowledgeDocument]] = None


def _check_domain(v):
    if v is None:
        return v
    v = v.strip()
    if not validate_domain(v):
        raise ValueError("Please provide a valid domain")
    return v


Domain = Annotated[str, AfterValidator(_check_domain)]


class IntegrationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    domain: Domain
    widget_settings: WidgetSettings = Field(default_factory=WidgetSettings)
    knowledge_base: KnowledgeBase = Field(default_factory=KnowledgeBase)
    allow_file_attachments: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please provide a name for this integration")
        return v


class IntegrationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    domain: Optional[Domain] = None
    widget_settings: Optional[WidgetSettingsUpdate] = None
    knowledge_base: Optional[KnowledgeBaseUpdate] = None
    allow_file_attachments: Optional[bool] = None
    active: Optional[bool] = None


class KnowledgeUrlRequest(BaseModel):
    url: Optional[str] = None


class KnowledgeDocumentRemoveRequest(BaseModel):
    name: Optional[str] = None


class PageMetadata(BaseModel):
    """
    Live page context collected by the widget.
    Unknown keys are kept so demo pages can pass extra hints.
    """
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    title: Optional[str] = None
    referrer: Optional[str] = None
    page_content: Optional[str] = None


class ExternalChatRequest(BaseModel):
    # Presence of api_key/message is checked by the service so a missing field is a 400
    api_key: Optional[str] = None
    message: Optional[str] = Field(default=None, max_length=4000)
    chat_id: Optional[str] = Field(default=None, max_length=100)
    visitor_id: Optional[str] = Field(default=None, max_length=100)
    metadata: Optional[PageMetadata] = None

    class Config:
        json_schema_extra = {
            "example": {
                "api_key": "0f1e2d3c4b5a69788796a5b4c3d2e1f0",
                "message": "Do you ship to Canada?",
                "chat_id": None,
                "visitor_id": "k2j3h4g5f6d7",
                "metadata": {
                    "url": "https://shop.com/products/mug",
                    "title": "Ceramic Mug | Shop",
                    "page_content": "Ceramic mug 350ml. Price: $12."
                }
            }
        }
