from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field

from .documents import Document


class AssetPaths(BaseModel):
    template: str
    drawing: str
    ddx: str


class AssetSettings(BaseModel):
    backend: Literal["filesystem", "s3"] = "filesystem"
    root: str = "assets"
    bucket: str = ""
    prefix: str = ""


class ServiceSettings(BaseModel):
    output_url: str
    assembler_url: str
    timeout: float = Field(60.0, gt=0)
    username: Optional[str] = None
    password: Optional[str] = None


class Settings(BaseModel):
    charset: str
    rendition: str = "original"
    defaults: AssetPaths
    assets: AssetSettings
    services: ServiceSettings


class ConfigMetadata(BaseModel):
    charset: str
    rendition: str
    defaults: AssetPaths
    asset_backend: str


class PDFOutputOptions(BaseModel):
    """Options forwarded to the form output service. Defaults match the service's own."""

    content_root: Optional[str] = None
    locale: Optional[str] = None
    retain_unsigned_signature_fields: bool = False
    embed_fonts: bool = False
    linearized_pdf: bool = False
    tagged_pdf: bool = False


class AssemblerOptionSpec(BaseModel):
    """Options forwarded to the assembler service."""

    fail_on_error: bool = True
    default_style: Optional[str] = None
    log_level: str = "INFO"
    validate_only: bool = False


@dataclass
class AssemblerResult:
    """Named output documents produced by one assembler invocation."""

    documents: Dict[str, Document] = field(default_factory=dict)
    job_log: Optional[str] = None
