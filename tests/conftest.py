"""
Pytest configuration and fixtures for drawing builder tests.
"""

import os
import shutil
import tempfile
from io import BytesIO
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["DRAWING_BUILDER_CONFIG"] = str(Path(__file__).resolve().parents[1] / "config" / "config.yaml")
os.environ["ASSET_BACKEND"] = "filesystem"
os.environ["ASSET_ROOT"] = tempfile.mkdtemp(prefix="drawing_builder_assets_")
os.environ["OUTPUT_SERVICE_URL"] = "http://forms.test/output"
os.environ["ASSEMBLER_SERVICE_URL"] = "http://forms.test/assembler"
os.environ.pop("DRAWING_BUILDER_CHARSET", None)

from drawing_builder.configuration import load_settings
from drawing_builder.documents import PDF_CONTENT_TYPE, Document
from drawing_builder.errors import NotFound
from drawing_builder.main import app, get_document_merger
from drawing_builder.models import AssemblerResult
from drawing_builder.pipeline import DocumentMerger

DEFAULT_TEMPLATE = "/content/dam/iec/templates/PDF_CVL_MECH_BACKGROUNDS_A0AUTOCAD_A0.pdf"
DEFAULT_DRAWING = "/content/dam/iec/fragments/TR0_20-B00-1GH499-00before.pdf"
DEFAULT_DDX = "/content/dam/iec/ddx.xml"

TEMPLATE_BYTES = b"%PDF-1.7 template"
DRAWING_BYTES = b"%PDF-1.7 drawing"
DDX_BYTES = b'<DDX xmlns="http://ns.adobe.com/DDX/1.0/"><PDF result="result.pdf"/></DDX>'
MERGED_BYTES = b"%PDF-1.7 merged"
RESULT_BYTES = b"%PDF-1.7 result \x00\xff"


class InMemoryAssetRepository:
    """Asset repository over a dict of path -> original rendition bytes."""

    def __init__(self, assets):
        self.assets = dict(assets)
        self.requests = []

    def get_rendition(self, path, rendition):
        self.requests.append((path, rendition))
        if path not in self.assets:
            raise NotFound(path)
        return BytesIO(self.assets[path])


class StubOutputService:
    def __init__(self, result=MERGED_BYTES, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def generate_pdf_output(self, template, data, options):
        self.calls.append(
            {
                "template": template.read_bytes(),
                "data": data.read_bytes(),
                "data_content_type": data.content_type,
                "options": options,
            }
        )
        if self.error:
            raise self.error
        return Document(self.result, PDF_CONTENT_TYPE)


class StubAssemblerService:
    def __init__(self, outputs=None, error=None):
        self.outputs = {"result.pdf": RESULT_BYTES} if outputs is None else outputs
        self.error = error
        self.calls = []

    def invoke(self, ddx, inputs, options):
        self.calls.append(
            {
                "ddx": ddx.read_bytes(),
                "input_names": list(inputs),
                "inputs": {name: document.read_bytes() for name, document in inputs.items()},
                "options": options,
            }
        )
        if self.error:
            raise self.error
        return AssemblerResult(documents={name: Document(content, PDF_CONTENT_TYPE) for name, content in self.outputs.items()})


@pytest.fixture(scope="session", autouse=True)
def asset_root():
    """Cleanup the asset directory after all tests."""
    root = os.environ["ASSET_ROOT"]
    yield Path(root)
    shutil.rmtree(root, ignore_errors=True)


@pytest.fixture
def settings():
    return load_settings()


@pytest.fixture
def asset_repository():
    return InMemoryAssetRepository(
        {
            DEFAULT_TEMPLATE: TEMPLATE_BYTES,
            DEFAULT_DRAWING: DRAWING_BYTES,
            DEFAULT_DDX: DDX_BYTES,
        }
    )


@pytest.fixture
def output_service():
    return StubOutputService()


@pytest.fixture
def assembler_service():
    return StubAssemblerService()


@pytest.fixture
def merger(settings, asset_repository, output_service, assembler_service):
    return DocumentMerger(
        settings=settings,
        assets=asset_repository,
        output_service=output_service,
        assembler_service=assembler_service,
    )


@pytest.fixture
def client(merger):
    """Create a test client whose merge endpoint uses the stub collaborators."""
    app.dependency_overrides[get_document_merger] = lambda: merger
    yield TestClient(app)
    app.dependency_overrides.clear()
