"""
QuantumFlow — FastAPI Backend

Endpoints:
  POST   /v1/sessions                          — Start a session (owns one image list)
  GET    /v1/sessions/{sid}                    — Images, lock state, last status
  DELETE /v1/sessions/{sid}                    — Drop a session
  POST   /v1/sessions/{sid}/images             — Upload image(s), all-settled admission
  DELETE /v1/sessions/{sid}/images/{record_id} — Remove one image
  DELETE /v1/sessions/{sid}/images?confirm=true — Remove all images
  POST   /v1/sessions/{sid}/images/move        — Reorder: {old_index, new_index}
  POST   /v1/sessions/{sid}/convert            — Session images → PDF download
  GET    /v1/sessions/{sid}/status             — Conversion progress
  POST   /v1/sessions/{sid}/cancel             — Stop a running conversion
  POST   /v1/image-to-pdf                      — Stateless: image(s) → PDF
  GET    /health                               — Health check
"""

import base64
import json
import time
import uuid

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from quantumflow.core.config import settings
from quantumflow.errors import QuantumFlowError
from quantumflow.models.image import ConversionSettings, OrientationMode
from quantumflow.models.job import ConversionResult
from quantumflow.pipeline.admission import Upload, admit_uploads
from quantumflow.pipeline.assembler import DocumentAssembler
from quantumflow.pipeline.sequence import ImageSequence
from quantumflow.pipeline.session import SessionRegistry
from quantumflow.utils.logging import logger

VERSION = "1.0.0"

app = FastAPI(
    title="QuantumFlow API",
    description="Assemble an ordered list of images into a single PDF, one page per image.",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-QuantumFlow-Job", "X-QuantumFlow-Rejected", "X-Request-Id"],
)


def _new_assembler() -> DocumentAssembler:
    return DocumentAssembler(
        paper=settings.layout.paper,
        margin=settings.layout.margin,
        output_prefix=settings.output_prefix,
    )


registry = SessionRegistry(
    assembler_factory=_new_assembler,
    max_images=settings.limits.max_images,
    max_file_bytes=settings.limits.max_file_bytes,
)


@app.on_event("startup")
async def _startup_banner():
    logger.info("")
    logger.info("╔══════════════════════════════════════════════════╗")
    logger.info("║          QuantumFlow  ·  Images → PDF API        ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  POST /v1/sessions          → New image list     ║")
    logger.info("║  POST /v1/sessions/…/images → Upload images      ║")
    logger.info("║  POST /v1/sessions/…/convert → Download PDF      ║")
    logger.info("║  POST /v1/image-to-pdf      → One-shot PDF       ║")
    logger.info("║  GET  /health               → Health check       ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  Paper       : %-34s║", settings.layout.paper)
    logger.info("║  Margin      : %-34s║", f"{settings.layout.margin:g} pt")
    logger.info("║  Max images  : %-34s║", settings.limits.max_images)
    logger.info("╚══════════════════════════════════════════════════╝")
    logger.info("")


# ──────────────────────────────────────────────────────────
# Request models and helpers
# ──────────────────────────────────────────────────────────

class ConvertRequest(BaseModel):
    quality: float = Field(
        default=settings.layout.default_quality, ge=0.0, le=1.0,
        description="JPEG fidelity, 0.0–1.0 (ignored for PNG)",
    )
    orientation_mode: OrientationMode = Field(
        default=OrientationMode.AUTO,
        description="auto | portrait | landscape",
    )


class MoveRequest(BaseModel):
    old_index: int = Field(..., ge=0)
    new_index: int = Field(..., ge=0)


def _request_id() -> str:
    return uuid.uuid4().hex[:12]


def _http_error(request_id: str, exc: QuantumFlowError) -> HTTPException:
    logger.warning("[%s] %s: %s", request_id, exc.code, exc.message)
    return HTTPException(status_code=exc.http_status, detail=exc.to_dict())


async def _read_uploads(files: list[UploadFile]) -> list[Upload]:
    return [
        Upload(filename=f.filename or "upload", content=await f.read(), content_type=f.content_type)
        for f in files
    ]


def _b64_json(payload) -> str:
    return base64.b64encode(json.dumps(payload).encode()).decode("ascii")


def _pdf_response(result: ConversionResult, pdf_bytes: bytes, request_id: str, extra_headers=None) -> Response:
    headers = {
        "Content-Disposition": f'attachment; filename="{result.artifact.filename}"',
        "X-Request-Id": request_id,
        "X-QuantumFlow-Job": base64.b64encode(result.model_dump_json().encode()).decode("ascii"),
    }
    headers.update(extra_headers or {})
    return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)


# ──────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {"status": "ok", "service": "quantumflow-api", "version": VERSION}


@app.post("/v1/sessions", status_code=201)
async def create_session():
    session = registry.create()
    return {"session_id": session.session_id, "max_images": session.sequence.max_images}


@app.get("/v1/sessions/{session_id}")
async def get_session(session_id: str):
    request_id = _request_id()
    try:
        return registry.get(session_id).summary()
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)


@app.delete("/v1/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    request_id = _request_id()
    try:
        registry.delete(session_id)
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    return Response(status_code=204)


@app.post("/v1/sessions/{session_id}/images")
async def upload_images(
    session_id: str,
    files: list[UploadFile] = File(..., description="One or more images (jpeg, png, webp)"),
):
    """
    Add images to the end of the session's list.

    Each file is admitted or rejected on its own; the response lists both.
    """
    request_id = _request_id()
    logger.info("[%s] POST images — session %s, %d file(s)", request_id, session_id, len(files))
    try:
        session = registry.get(session_id)
        report = await session.add_uploads(await _read_uploads(files))
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    return report.to_dict()


@app.delete("/v1/sessions/{session_id}/images/{record_id}")
async def remove_image(session_id: str, record_id: int):
    request_id = _request_id()
    try:
        session = registry.get(session_id)
        record = session.remove(record_id)
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    return {"removed": record.summary(), "count": len(session.sequence)}


@app.delete("/v1/sessions/{session_id}/images")
async def clear_images(session_id: str, confirm: bool = False):
    request_id = _request_id()
    try:
        removed = registry.get(session_id).clear(confirm=confirm)
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    return {"removed": removed, "count": 0}


@app.post("/v1/sessions/{session_id}/images/move")
async def move_image(session_id: str, req: MoveRequest):
    request_id = _request_id()
    try:
        session = registry.get(session_id)
        session.move(req.old_index, req.new_index)
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    return {"order": [r.id for r in session.sequence]}


@app.post(
    "/v1/sessions/{session_id}/convert",
    response_class=Response,
    responses={
        200: {"content": {"application/pdf": {}}, "description": "Generated PDF"},
        409: {"description": "A conversion is already running"},
        422: {"description": "An image could not be placed"},
    },
)
async def convert_session(session_id: str, req: ConvertRequest | None = None):
    """
    Convert the session's images, in their current order, into one PDF.

    The image list is locked until the conversion ends. The X-QuantumFlow-Job
    header carries the ConversionResult (per-page geometry, timings) as
    base64 JSON.
    """
    req = req or ConvertRequest()
    request_id = _request_id()
    start = time.perf_counter()
    logger.info(
        "[%s] POST convert — session %s | quality=%.2f orientation=%s",
        request_id, session_id, req.quality, req.orientation_mode.value,
    )

    try:
        session = registry.get(session_id)
        result, pdf_bytes = await session.convert(
            ConversionSettings(quality=req.quality, orientation_mode=req.orientation_mode)
        )
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    except Exception as exc:
        logger.exception("[%s] Conversion failed", request_id)
        raise HTTPException(status_code=500, detail=str(exc))

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("[%s] Complete — %d bytes in %.0f ms", request_id, len(pdf_bytes), elapsed_ms)
    return _pdf_response(result, pdf_bytes, request_id)


@app.get("/v1/sessions/{session_id}/status")
async def conversion_status(session_id: str):
    request_id = _request_id()
    try:
        return registry.get(session_id).status.model_dump()
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)


@app.post("/v1/sessions/{session_id}/cancel")
async def cancel_conversion(session_id: str):
    request_id = _request_id()
    try:
        cancelled = registry.get(session_id).cancel()
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    return {"cancelled": cancelled}


@app.post("/v1/image-to-pdf", response_class=Response)
async def image_to_pdf(
    files: list[UploadFile] = File(..., description="One or more images, in page order"),
    quality: float = Query(default=settings.layout.default_quality, ge=0.0, le=1.0),
    orientation: OrientationMode = Query(default=OrientationMode.AUTO),
):
    """
    Convert uploaded images straight into a single PDF, one page each, in
    upload order. Files that could not be admitted are skipped and listed
    (base64 JSON) in X-QuantumFlow-Rejected.
    """
    request_id = _request_id()
    logger.info("[%s] POST /v1/image-to-pdf — %d files", request_id, len(files))

    sequence = ImageSequence(max_images=settings.limits.max_images)
    try:
        report = await admit_uploads(
            sequence, await _read_uploads(files), max_file_bytes=settings.limits.max_file_bytes
        )
        if not report.accepted:
            raise HTTPException(
                status_code=422,
                detail={
                    "error_code": "NO_IMAGES_ADMITTED",
                    "message": "None of the uploaded files could be used",
                    "detail": report.to_dict()["rejected"],
                },
            )
        assembler = _new_assembler()
        result = await assembler.assemble(
            sequence.snapshot(),
            ConversionSettings(quality=quality, orientation_mode=orientation),
        )
    except HTTPException:
        raise
    except QuantumFlowError as exc:
        raise _http_error(request_id, exc)
    except Exception as exc:
        logger.exception("[%s] image-to-pdf failed", request_id)
        raise HTTPException(status_code=500, detail=str(exc))

    rejected = report.to_dict()["rejected"]
    return _pdf_response(
        result,
        assembler.pdf_bytes,
        request_id,
        extra_headers={"X-QuantumFlow-Rejected": _b64_json(rejected)} if rejected else None,
    )
