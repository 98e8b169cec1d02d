"""
Merge pipeline: decode data, load assets, fill the form, overlay the drawing.

DocumentMerger is the orchestration core behind the merge endpoint. It owns no
state between calls; the asset repository and both remote services are passed
in explicitly so callers (and tests) decide which implementations are used.

Stages run strictly in order and any failure aborts the run:

    DECODE_REQUEST -> LOAD_ASSETS -> MERGE -> OVERLAY -> RESPOND
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional

from .assets import AssetRepository, load_asset
from .documents import Document, decode_request_body
from .errors import AssemblyFailure, MergeFailure, MissingOutputError
from .models import AssemblerOptionSpec, AssetPaths, PDFOutputOptions, Settings
from .services import AssemblerService, OutputService
from .utils import first_non_empty

logger = logging.getLogger(__name__)

TEMPLATE_INPUT = "template.pdf"
DRAWING_INPUT = "drawing.pdf"
RESULT_OUTPUT = "result.pdf"


class PipelineStage(str, Enum):
    DECODE_REQUEST = "decode_request"
    LOAD_ASSETS = "load_assets"
    MERGE = "merge"
    OVERLAY = "overlay"
    RESPOND = "respond"


class DocumentMerger:
    """
    Builds the final drawing PDF for one request.

    Args:
        settings: Validated service settings (charset, rendition, default paths)
        assets: Repository the template, drawing and DDX are loaded from
        output_service: Form output service used to merge data into the template
        assembler_service: Assembler service used to overlay the drawing
    """

    def __init__(
        self,
        settings: Settings,
        assets: AssetRepository,
        output_service: OutputService,
        assembler_service: AssemblerService,
    ) -> None:
        self.settings = settings
        self.assets = assets
        self.output_service = output_service
        self.assembler_service = assembler_service

    def resolve_paths(
        self,
        template: Optional[str] = None,
        drawing: Optional[str] = None,
        ddx: Optional[str] = None,
    ) -> AssetPaths:
        """Fill in the configured default for every missing or blank path."""
        defaults = self.settings.defaults
        return AssetPaths(
            template=first_non_empty(template, defaults.template),
            drawing=first_non_empty(drawing, defaults.drawing),
            ddx=first_non_empty(ddx, defaults.ddx),
        )

    def merge(self, data: Document, template: Document) -> Document:
        """
        Merge the data with the document template.

        Raises:
            MergeFailure: If the output service fails for any reason
        """
        try:
            return self.output_service.generate_pdf_output(template, data, PDFOutputOptions())
        except MergeFailure:
            raise
        except Exception as exc:
            raise MergeFailure(f"Form output merge failed: {exc}") from exc

    def overlay(self, merged_template: Document, ddx: Document, drawing: Document) -> Document:
        """
        Overlay the drawing on the filled template as described by the DDX.

        Raises:
            AssemblyFailure: If the assembler call fails
            MissingOutputError: If the assembler returns no result.pdf
        """
        inputs: Dict[str, Document] = {
            TEMPLATE_INPUT: merged_template,
            DRAWING_INPUT: drawing,
        }
        try:
            result = self.assembler_service.invoke(ddx, inputs, AssemblerOptionSpec())
        except AssemblyFailure:
            raise
        except Exception as exc:
            raise AssemblyFailure(f"Assembler invocation failed: {exc}") from exc

        if result.job_log:
            logger.debug(f"assembler job log: {result.job_log}")

        output = result.documents.pop(RESULT_OUTPUT, None)
        # Only result.pdf is delivered; anything else the DDX produced is dropped
        for name, extra in result.documents.items():
            logger.info(f"Discarding unused assembler output {name}")
            extra.close()
        if output is None:
            raise MissingOutputError(RESULT_OUTPUT, result.documents.keys())
        return output

    def build(self, data: Document, paths: AssetPaths) -> Document:
        """
        Run load, merge and overlay for an already decoded data document.

        Documents created here are closed once they are no longer needed,
        whether or not the run succeeds.
        """
        stage = PipelineStage.LOAD_ASSETS
        opened: list[Document] = [data]
        try:
            logger.info(f"[{stage.value}] template={paths.template} drawing={paths.drawing} ddx={paths.ddx}")
            rendition = self.settings.rendition
            template = load_asset(self.assets, paths.template, rendition)
            opened.append(template)
            drawing = load_asset(self.assets, paths.drawing, rendition)
            opened.append(drawing)
            ddx = load_asset(self.assets, paths.ddx, rendition)
            opened.append(ddx)
            logger.debug(f"ddx: {ddx}")

            stage = PipelineStage.MERGE
            logger.info(f"[{stage.value}] merging data into {paths.template}")
            merged = self.merge(data, template)
            opened.append(merged)

            stage = PipelineStage.OVERLAY
            logger.info(f"[{stage.value}] overlaying {paths.drawing}")
            return self.overlay(merged, ddx, drawing)
        except Exception:
            logger.warning(f"Pipeline aborted during {stage.value}")
            raise
        finally:
            for document in opened:
                document.close()

    def render(
        self,
        body: bytes,
        template: Optional[str] = None,
        drawing: Optional[str] = None,
        ddx: Optional[str] = None,
    ) -> bytes:
        """
        Produce the final PDF bytes for a raw request body.

        The result is read completely before returning, so a failure can never
        leave a caller holding a partial document.
        """
        logger.info(f"[{PipelineStage.DECODE_REQUEST.value}] {len(body)} bytes as {self.settings.charset}")
        data = decode_request_body(body, self.settings.charset)
        output = self.build(data, self.resolve_paths(template, drawing, ddx))

        logger.info(f"[{PipelineStage.RESPOND.value}] copying result document")
        with output:
            return output.read_bytes()
