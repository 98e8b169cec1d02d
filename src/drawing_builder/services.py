"""
Clients for the remote form output and assembler services.

The merge endpoint treats both services as black boxes. OutputService and
AssemblerService describe the capabilities the pipeline needs; the Http*
implementations reach the services over HTTP with requests.

Wire format:
    Output:    POST multipart (template, data) + option fields -> PDF bytes
    Assembler: POST multipart (ddx, one part per named input) + option fields
               -> JSON {"documents": {name: base64}, "job_log": "..."}
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Dict, Mapping, Optional, Protocol, Tuple

import requests

from .documents import PDF_CONTENT_TYPE, Document
from .errors import AssemblyFailure, MergeFailure
from .models import AssemblerOptionSpec, AssemblerResult, PDFOutputOptions, ServiceSettings

logger = logging.getLogger(__name__)


class OutputService(Protocol):
    def generate_pdf_output(self, template: Document, data: Document, options: PDFOutputOptions) -> Document:
        ...


class AssemblerService(Protocol):
    def invoke(self, ddx: Document, inputs: Mapping[str, Document], options: AssemblerOptionSpec) -> AssemblerResult:
        ...


def _option_fields(options) -> Dict[str, str]:
    fields = {}
    for key, value in options.model_dump(exclude_none=True).items():
        fields[key] = str(value).lower() if isinstance(value, bool) else str(value)
    return fields


def _file_part(name: str, document: Document) -> Tuple[str, bytes, str]:
    return name, document.read_bytes(), document.content_type


class _HttpServiceClient:
    url_setting = ""

    def __init__(self, url: str, timeout: float, auth: Optional[Tuple[str, str]] = None, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        if auth:
            self.session.auth = auth

    @classmethod
    def from_settings(cls, settings: ServiceSettings, session: Optional[requests.Session] = None):
        auth = (settings.username, settings.password or "") if settings.username else None
        return cls(getattr(settings, cls.url_setting), settings.timeout, auth=auth, session=session)

    def _post(self, files, data: Dict[str, str]) -> requests.Response:
        r = self.session.post(self.url, files=files, data=data, timeout=self.timeout)
        r.raise_for_status()
        return r


class HttpOutputService(_HttpServiceClient):
    """Merge XML data into a form template via the remote output service."""

    url_setting = "output_url"

    def generate_pdf_output(self, template: Document, data: Document, options: PDFOutputOptions) -> Document:
        files = {
            "template": _file_part("template", template),
            "data": _file_part("data", data),
        }
        logger.info(f"Calling output service at {self.url}")
        try:
            r = self._post(files, _option_fields(options))
        except requests.RequestException as exc:
            raise MergeFailure(f"Output service call failed: {exc}") from exc
        return Document(r.content, r.headers.get("Content-Type", PDF_CONTENT_TYPE))


class HttpAssemblerService(_HttpServiceClient):
    """Run a DDX description against named input documents via the remote assembler."""

    url_setting = "assembler_url"

    def invoke(self, ddx: Document, inputs: Mapping[str, Document], options: AssemblerOptionSpec) -> AssemblerResult:
        files = [("ddx", _file_part("ddx.xml", ddx))]
        for name, document in inputs.items():
            files.append((name, _file_part(name, document)))

        logger.info(f"Calling assembler service at {self.url} with inputs {list(inputs)}")
        try:
            r = self._post(files, _option_fields(options))
            payload = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise AssemblyFailure(f"Assembler service call failed: {exc}") from exc

        return self._parse_result(payload)

    @staticmethod
    def _parse_result(payload) -> AssemblerResult:
        if not isinstance(payload, dict) or not isinstance(payload.get("documents", {}), dict):
            raise AssemblyFailure("Assembler service returned an unexpected payload")

        documents: Dict[str, Document] = {}
        for name, encoded in payload.get("documents", {}).items():
            try:
                content = base64.b64decode(encoded, validate=True)
            except (binascii.Error, TypeError) as exc:
                raise AssemblyFailure(f"Assembler output '{name}' is not valid base64") from exc
            documents[name] = Document(content, PDF_CONTENT_TYPE)
        return AssemblerResult(documents=documents, job_log=payload.get("job_log"))
