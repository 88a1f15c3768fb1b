"""
Marie Reconciliation - Main FastAPI Application

PURPOSE: FastAPI routes, endpoints, and application setup
SCOPE: HTTP API layer and request/response handling
DEPENDENCIES: FastAPI, all backend modules
"""

import logging
import aiofiles
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional
from fastapi import APIRouter, FastAPI, UploadFile, File, Form, HTTPException, Query, Request, Response
from fastapi.responses import HTMLResponse

from .config import AppConfig, config
from .database import SqliteStorage
from .extraction import ExtractionError, TransactionExtractionService
from .exporters import export_filename, session_to_csv
from .managers import CategoryManager, SessionManager
from .ocr_processor import OCRProcessor
from .reporting import (
    average_ticket, category_totals, daily_totals, dashboard_totals,
    monthly_totals, recent_sessions, search_sessions, top_category
)
from .validators import parse_min_amount, sanitize_form_data, validate_category_name
from .workspace import ReconciliationWorkspace, WorkspaceBusyError

logger = logging.getLogger(__name__)

EXTRACTION_FAILED_MESSAGE = "Ocorreu um erro ao processar o arquivo com a IA. Tente novamente."
NO_CREDITS_MESSAGE = "Nenhum crédito foi identificado no extrato. Verifique se o arquivo está legível."
READ_FAILED_MESSAGE = "Falha ao ler o arquivo."


@dataclass
class AppServices:
    """Everything the routes need, built once per application."""
    config: AppConfig
    storage: object
    sessions: SessionManager
    categories: CategoryManager
    workspace: ReconciliationWorkspace
    extractor: TransactionExtractionService
    ocr: OCRProcessor


def build_services(app_config: AppConfig, storage=None, extractor=None, ocr=None) -> AppServices:
    storage = storage or SqliteStorage(app_config.DB_FILE)
    sessions = SessionManager(storage, app_config.SESSIONS_KEY)
    categories = CategoryManager(
        storage, app_config.CATEGORIES_KEY, app_config.DEFAULT_CATEGORIES, sessions
    )
    return AppServices(
        config=app_config,
        storage=storage,
        sessions=sessions,
        categories=categories,
        workspace=ReconciliationWorkspace(
            app_config.UNIDENTIFIED_PAYER, app_config.DEFAULT_CATEGORY
        ),
        extractor=extractor or TransactionExtractionService(
            api_key=app_config.GEMINI_API_KEY,
            model=app_config.GEMINI_MODEL,
            base_url=app_config.GEMINI_BASE_URL,
            timeout=app_config.GEMINI_TIMEOUT,
        ),
        ocr=ocr or OCRProcessor(app_config.OCR_LANGUAGES, app_config.OCR_ENABLED),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


router = APIRouter()


# ============================================================================
# FRONTEND ENDPOINTS
# ============================================================================

@router.get("/", response_class=HTMLResponse)
async def serve_index(request: Request):
    """Serve the main HTML interface."""
    index_path = Path(get_services(request).config.FRONTEND_DIR) / 'index.html'
    try:
        async with aiofiles.open(index_path, mode='r', encoding='utf-8') as f:
            content = await f.read()
        return HTMLResponse(content=content)
    except FileNotFoundError:
        return HTMLResponse(
            content="<h1>Clínica Marie</h1><p>Frontend file not found.</p>",
            status_code=404
        )


# ============================================================================
# STATEMENT UPLOAD ENDPOINT
# ============================================================================

@router.post("/upload-statement")
async def upload_statement(request: Request, file: UploadFile = File(...)):
    """Extract credit lines from a statement image or PDF into the workspace."""
    services = get_services(request)
    content_type = file.content_type or ''

    if content_type not in services.config.ALLOWED_CONTENT_TYPES and not content_type.startswith('image/'):
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {content_type or 'unknown'}")

    try:
        services.workspace.begin_extraction()
    except WorkspaceBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    try:
        document = await file.read()
        if not document:
            raise HTTPException(status_code=400, detail=READ_FAILED_MESSAGE)

        ocr_text = await services.ocr.extract_text(document, content_type)
        transactions = await services.extractor.extract_credits(document, content_type, ocr_text)
    except ExtractionError as e:
        logger.error(f"Error processing {file.filename}: {e}")
        raise HTTPException(status_code=502, detail=EXTRACTION_FAILED_MESSAGE)
    finally:
        services.workspace.end_extraction()

    if not transactions:
        logger.warning(f"No credits identified in {file.filename}")
        return {"success": False, "detail": NO_CREDITS_MESSAGE, "transactions": []}

    services.workspace.load(transactions)
    return {
        "success": True,
        "message": f"{len(transactions)} novos créditos identificados! Prontos para conciliar.",
        "transactions": [t.to_dict() for t in transactions]
    }


# ============================================================================
# WORKSPACE ENDPOINTS
# ============================================================================

@router.get("/workspace")
async def get_workspace(
    request: Request,
    date: str = Query(''),
    payer: str = Query(''),
    min_amount: Optional[str] = Query(None)
):
    """Get the pending batch, optionally filtered, with progress figures."""
    workspace = get_services(request).workspace
    minimum = parse_min_amount(min_amount)
    visible = workspace.filter(date, payer, minimum)

    rows = []
    for transaction in visible:
        row = transaction.to_dict()
        row.update(workspace.annotation_for(transaction.id).to_dict())
        rows.append(row)

    return {
        "transactions": rows,
        "total_count": len(workspace.transactions),
        "filtered_count": len(visible),
        "filtered_total": sum(t.amount for t in visible),
        "categorized_count": workspace.categorized_count(),
        "pending_count": workspace.pending_count(),
        "completion": round(workspace.completion() * 100, 2),
        "busy": workspace.busy
    }


@router.put("/workspace/transactions/{transaction_id}")
async def update_annotation(
    request: Request,
    transaction_id: str,
    payer_name: Optional[str] = Form(None),
    patient_name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    category: Optional[str] = Form(None)
):
    """Set one or more annotation fields of a pending transaction."""
    workspace = get_services(request).workspace
    if not workspace.get(transaction_id):
        raise HTTPException(status_code=404, detail="Transaction not found")

    fields = sanitize_form_data({
        'payer_name': payer_name,
        'patient_name': patient_name,
        'phone': phone,
        'email': email,
        'category': category
    })
    for field_name, value in fields.items():
        workspace.set_field(transaction_id, field_name, value)

    return {"success": True, "id": transaction_id,
            "annotation": workspace.annotation_for(transaction_id).to_dict()}


@router.post("/workspace/confirm")
async def confirm_workspace(request: Request):
    """Save the whole batch as a new reconciliation session."""
    services = get_services(request)
    if not services.workspace.transactions:
        raise HTTPException(status_code=400, detail="No pending transactions to reconcile")

    session = services.workspace.finalize()
    await services.sessions.append(session)

    return {
        "success": True,
        "message": f"Conciliação de {len(session.transactions)} itens salva com sucesso!",
        "session": session.to_dict()
    }


@router.delete("/workspace")
async def discard_workspace(request: Request):
    """Discard the pending batch without saving."""
    get_services(request).workspace.clear()
    return {"success": True}


# ============================================================================
# CATEGORY MANAGEMENT ENDPOINTS
# ============================================================================

@router.get("/categories")
async def get_categories(request: Request):
    """Get all categories in display order."""
    return get_services(request).categories.all()


@router.post("/add-category")
async def add_category(request: Request, name: str = Form(...)):
    """Add a new category."""
    is_valid, errors = validate_category_name(name)
    if not is_valid:
        return {"success": False, "detail": "; ".join(errors)}

    success = await get_services(request).categories.add_category(name.strip())
    if success:
        return {"success": True}
    else:
        return {"success": False, "detail": "Category already exists."}


@router.post("/categories/rename")
async def rename_category(request: Request, old_name: str = Form(...), new_name: str = Form(...)):
    """Rename a category, updating saved sessions and pending choices."""
    is_valid, errors = validate_category_name(new_name)
    if not is_valid:
        return {"success": False, "detail": "; ".join(errors)}

    services = get_services(request)
    new_name = new_name.strip()
    success = await services.categories.rename_category(old_name, new_name)
    if not success:
        return {"success": False, "detail": "Category not found."}

    services.workspace.rename_category(old_name, new_name)
    return {"success": True, "categories": services.categories.all()}


@router.delete("/categories/{name}")
async def delete_category(request: Request, name: str):
    """Remove a category from the list; saved sessions keep their labels."""
    success = await get_services(request).categories.delete_category(name)
    if not success:
        raise HTTPException(status_code=404, detail=f"Category '{name}' not found.")
    return {"success": True}


# ============================================================================
# HISTORY ENDPOINTS
# ============================================================================

@router.get("/sessions")
async def get_sessions(request: Request, q: str = Query('')):
    """Get saved sessions, newest first, optionally narrowed by a search query."""
    sessions = search_sessions(get_services(request).sessions.all(), q)
    return [s.to_dict(include_matching=True) for s in sessions]


@router.get("/sessions/{session_id}/export")
async def export_session(request: Request, session_id: str):
    """Download a session as CSV."""
    session = get_services(request).sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    return Response(
        content=session_to_csv(session).encode('utf-8'),
        media_type='text/csv; charset=utf-8',
        headers={'Content-Disposition': f'attachment; filename="{export_filename(session)}"'}
    )


# ============================================================================
# REPORTING ENDPOINTS
# ============================================================================

@router.get("/reports/dashboard")
async def get_dashboard(request: Request):
    """Totals and the most recent sessions."""
    services = get_services(request)
    sessions = services.sessions.all()
    totals = dashboard_totals(sessions)

    return {
        "total_amount": totals.total_amount,
        "transaction_count": totals.transaction_count,
        "last_session_date": totals.last_session_date,
        "recent_sessions": [
            {"id": s.id, "date": s.date, "count": len(s.transactions), "totalAmount": s.total_amount}
            for s in recent_sessions(sessions, services.config.RECENT_SESSIONS_LIMIT)
        ]
    }


@router.get("/reports/summary")
async def get_report_summary(request: Request):
    """Chart data: per month, per statement date and per category."""
    sessions = get_services(request).sessions.all()
    top = top_category(sessions)

    return {
        "monthly": [{"name": name, "value": value} for name, value in monthly_totals(sessions)],
        "daily": [{"name": name, "value": value} for name, value in daily_totals(sessions)],
        "categories": [{"name": name, "value": value} for name, value in category_totals(sessions)],
        "top_category": {"name": top[0], "value": top[1]} if top else None,
        "average_ticket": average_ticket(sessions)
    }


# ============================================================================
# UTILITY ENDPOINTS
# ============================================================================

@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

def create_app(app_config: AppConfig = None, storage=None, extractor=None, ocr=None) -> FastAPI:
    """Build the FastAPI app with its own store, workspace and extractor."""
    services = build_services(app_config or config, storage, extractor, ocr)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize storage and load durable state on startup."""
        await services.storage.initialize()
        await services.sessions.load()
        await services.categories.load()
        logger.info("Storage initialized successfully.")
        yield

    app = FastAPI(title="Clínica Marie - Conciliação Bancária", lifespan=lifespan)
    app.state.services = services
    app.include_router(router)
    return app


app = create_app()


# ============================================================================
# APPLICATION ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.app:app", host="0.0.0.0", port=8000, reload=True)
