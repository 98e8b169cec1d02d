"""
IEC Drawing Builder - merged drawing PDFs over HTTP

This package provides a FastAPI-based web service that builds a single PDF
from three inputs:

- XML form data posted in the request body
- A form template loaded from the asset repository
- A drawing fragment loaded from the asset repository

The form template is filled with the data by a remote form output service,
then the drawing is overlaid by a remote assembler service driven by a DDX
description (also loaded from the asset repository). The backend is a thin
orchestration layer: all PDF rendering and assembly happens in those services.

Key Components:
    - main: FastAPI application and the /bin/iec/mergeDocument endpoint
    - pipeline: DocumentMerger, the decode/load/merge/overlay sequence
    - documents: single-pass Document handles and request decoding
    - assets: filesystem and S3 asset repositories
    - services: HTTP clients for the output and assembler services
    - configuration: config.yaml loading, overrides and validation
    - errors: failure taxonomy mapped to HTTP 500 at the endpoint

Usage:
    Run the API server with:
        uvicorn drawing_builder.main:app --host 0.0.0.0 --port 8000

    Then post XML data:
        curl -X POST --data-binary @data.xml \
            "http://localhost:8000/bin/iec/mergeDocument?drawing=/content/dam/iec/fragments/x.pdf" \
            -o drawing.pdf
"""
