"""
Mermaid Mender Backend - FastAPI Application

This is the main entry point for the repair service.
It provides:
- REST API for refining documents and repairing single blocks
- Validation of documents against the configured diagram grammar
- Batch repair of a folder of Markdown documents
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException

from mermaid_mender.analysis import summarize_block
from mermaid_mender.blocks import iter_blocks
from mermaid_mender.config import MenderSettings, build_checker
from mermaid_mender.models import BatchRequest, CheckRequest, RefineRequest, RepairRequest
from mermaid_mender.refine import refine, repair_block
from mermaid_mender.validation import ValidityChecker, validate_document, validation_summary

from .batch_manager import BatchRepairManager

logger = logging.getLogger(__name__)

settings = MenderSettings.from_env()
_checker: Optional[ValidityChecker] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    global _checker
    _checker = build_checker(settings)
    if _checker is None:
        logger.info("No diagram grammar configured, deep repair disabled")
    else:
        logger.info("Validating diagram blocks with the %s parser", settings.parser)

    yield

    _checker = None


def get_checker() -> Optional[ValidityChecker]:
    """Validity checker for the current process (overridable in tests)."""
    return _checker


# --- FastAPI App ---

app = FastAPI(
    title="Mermaid Mender API",
    description="Repairs malformed Mermaid diagram blocks in Markdown documents",
    version="1.0.0",
    lifespan=lifespan
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "parser": settings.parser}


# --- Repair ---

@app.post("/api/refine")
async def refine_document(
    request: RefineRequest,
    checker: Optional[ValidityChecker] = Depends(get_checker),
):
    """Normalize every diagram block, deep-repairing the ones that fail to parse."""
    content = await refine(request.content, checker, deep=request.deep)
    invalid = await checker.count_invalid(content) if checker else None
    return {
        "success": True,
        "content": content,
        "changed": content != request.content,
        "invalid_blocks": invalid,
    }


@app.post("/api/repair")
async def repair_single_block(request: RepairRequest):
    """Force deep repair on the inner text of one block."""
    content = repair_block(request.content)
    return {"success": True, "content": content, "changed": content != request.content}


# --- Validation ---

@app.post("/api/check")
async def check_document(
    request: CheckRequest,
    checker: Optional[ValidityChecker] = Depends(get_checker),
):
    """Validate every diagram block of a document."""
    if checker is None:
        raise HTTPException(status_code=400, detail="No diagram grammar configured")

    issues = await validate_document(request.content, checker)
    return {
        "success": True,
        "invalid_blocks": await checker.count_invalid(request.content),
        "issues": [i.to_dict() for i in issues],
        "summary": validation_summary(issues),
        "blocks": [summarize_block(b.content).to_dict() for b in iter_blocks(request.content)],
    }


# --- Batch ---

@app.post("/api/batch")
async def batch_repair(
    request: BatchRequest,
    checker: Optional[ValidityChecker] = Depends(get_checker),
):
    """Repair every Markdown file in a folder."""
    if checker is None:
        raise HTTPException(status_code=400, detail="No diagram grammar configured")

    manager = BatchRepairManager(checker, settings)
    try:
        report = await manager.fix_folder(
            request.folder,
            move_error_files=request.move_error_files,
            error_folder=request.error_folder,
            write_error_report=request.write_error_report,
        )
    except NotADirectoryError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"success": True, **report.model_dump(), "error_count": report.error_count}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
