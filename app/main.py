"""
HTTP API for DinDin

This is the boundary the web client talks to. Every route except the
health check needs a session token and only ever sees the caller's data.

DESIGN PRINCIPLES:
1. Errors are JSON objects with a single `error` message in Portuguese
2. Validation problems are 400, missing session is 401, anything else 500
3. Internal details are logged, never returned
4. Restoring a backup never happens without `confirmDelete: true`

Run with:
    uvicorn app.main:app --reload
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, File, Form, Header, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from src.audit import create_correlation_id
from src.auth import UNAUTHORIZED_MESSAGE, AuthenticationError
from src.backup import (
    BackupError,
    BackupValidationError,
    ExportFormat,
    ExportResource,
    InvalidBackupError,
    backup_filename,
    export_filename,
    parse_export_options,
    render_csv,
)
from src.config import validate_all_settings
from src.imports import ImportRequest, ImportValidationError
from src.models.extraction import DocumentKind
from src.models.finance import AuthenticatedUser
from src.orchestrator import AppContext, create_app_components
from src.services.ocr import ExtractionFailedError, OCRError

logger = structlog.get_logger(__name__)

EXPORT_FAILED_MESSAGE = "Erro ao criar backup"
RESTORE_FAILED_MESSAGE = "Erro ao restaurar backup"
INVALID_REQUEST_MESSAGE = "Dados inválidos"


def error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def current_user(
    authorization: Optional[str] = Header(default=None),
    context: AppContext = Depends(get_context),
) -> AuthenticatedUser:
    """The verified session user, or 401."""
    if context.authenticator is None:
        raise AuthenticationError("authentication not configured")
    try:
        return context.authenticator.authenticate(authorization)
    except AuthenticationError as e:
        await context.audit_logger.log_authentication_failed(e.reason)
        raise


# =============================================================================
# APP
# =============================================================================

def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        context: Ready application context. Without one, the lifespan
                builds it from the environment on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.context is None:
            app.state.context = create_app_components()
        logger.info("app_started")
        yield
        await app.state.context.close()

    app = FastAPI(title="DinDin API", lifespan=lifespan)
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        return error_response(401, UNAUTHORIZED_MESSAGE, headers={"WWW-Authenticate": "Bearer"})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.info("invalid_request", path=request.url.path, errors=len(exc.errors()))
        return error_response(400, INVALID_REQUEST_MESSAGE)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @app.get("/api/health")
    async def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "configured": {
                name: ok for name, ok in validate_all_settings().items()
                if isinstance(ok, bool)
            },
        }

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    @app.get("/api/backup")
    async def export_backup(
        user: AuthenticatedUser = Depends(current_user),
        context: AppContext = Depends(get_context),
    ):
        try:
            snapshot = await context.backup_service.export(user)
        except BackupError as e:
            return error_response(e.status_code, e.message)
        except Exception:
            logger.exception("backup_export_failed", action="backup", resource="backup", owner_id=user.id)
            return error_response(500, EXPORT_FAILED_MESSAGE)

        filename = backup_filename(snapshot.created_at, context.settings.backup_filename_prefix)
        return JSONResponse(
            content=snapshot.to_wire(),
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/backup")
    async def restore_backup(
        request: Request,
        user: AuthenticatedUser = Depends(current_user),
        context: AppContext = Depends(get_context),
    ):
        try:
            body = await request.json()
        except ValueError:
            return error_response(400, InvalidBackupError().message)

        try:
            result = await context.backup_service.restore(user, body)
        except BackupValidationError as e:
            return error_response(400, e.message)
        except BackupError:
            return error_response(500, RESTORE_FAILED_MESSAGE)
        except Exception:
            logger.exception("restore_failed", action="restore", resource="backup", owner_id=user.id)
            return error_response(500, RESTORE_FAILED_MESSAGE)

        return result.to_wire()

    @app.get("/api/export")
    async def export_data(
        format: str = Query(default=ExportFormat.JSON.value),
        resource: str = Query(default=ExportResource.ALL.value),
        start: Optional[date] = Query(default=None, alias="dataInicio"),
        end: Optional[date] = Query(default=None, alias="dataFim"),
        user: AuthenticatedUser = Depends(current_user),
        context: AppContext = Depends(get_context),
    ):
        try:
            fmt, selected = parse_export_options(format, resource)
            data = await context.exporter.export(user, selected, start, end, fmt)
        except BackupError as e:
            return error_response(e.status_code, e.message)
        except Exception:
            logger.exception("data_export_failed", action="export", resource="export", owner_id=user.id)
            return error_response(500, "Erro ao exportar dados")

        filename = export_filename(selected, fmt, datetime.now(timezone.utc).date())
        disposition = {"Content-Disposition": f'attachment; filename="{filename}"'}
        if fmt == ExportFormat.JSON:
            return JSONResponse(content=data, headers=disposition)

        rendered = render_csv(data, selected)
        if isinstance(rendered, dict):
            return rendered
        return Response(content=rendered, media_type="text/csv; charset=utf-8", headers=disposition)

    # -------------------------------------------------------------------------
    # Document import
    # -------------------------------------------------------------------------

    @app.post("/api/ocr")
    async def extract_document(
        file: UploadFile = File(...),
        type: str = Form(DocumentKind.BOLETO.value),
        user: AuthenticatedUser = Depends(current_user),
        context: AppContext = Depends(get_context),
    ):
        try:
            kind = DocumentKind(type)
        except ValueError:
            return error_response(400, "Tipo de documento inválido. Use 'boleto' ou 'fatura'.")

        correlation_id = create_correlation_id()
        content = await file.read()
        try:
            result = await context.ocr_service.extract(
                content,
                file.content_type or "",
                kind=kind,
                filename=file.filename or "",
            )
        except OCRError as e:
            if isinstance(e, ExtractionFailedError):
                await context.audit_logger.log_external_service_error("gemini", e.message, correlation_id)
            await context.audit_logger.log_extraction_failed(user.id, e.message, correlation_id)
            return error_response(e.status_code, e.message)

        await context.audit_logger.log_document_extracted(
            user.id, result.kind.value, result.count, correlation_id
        )
        return {
            "success": True,
            "type": result.kind.value,
            "transactions": [t.model_dump(mode="json") for t in result.transactions],
            "count": result.count,
        }

    @app.post("/api/import")
    async def import_data(
        payload: ImportRequest,
        user: AuthenticatedUser = Depends(current_user),
        context: AppContext = Depends(get_context),
    ):
        try:
            report = await context.importer.import_data(user, payload)
        except ImportValidationError as e:
            content = {"error": e.message}
            if e.validation_errors:
                content["validation_errors"] = [v.model_dump() for v in e.validation_errors]
            return JSONResponse(status_code=e.status_code, content=content)
        except Exception:
            logger.exception("import_failed", action="import", resource="import", owner_id=user.id)
            return error_response(500, "Erro ao importar dados")
        return report.model_dump(mode="json")

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    @app.get("/api/dashboard")
    async def dashboard(
        user: AuthenticatedUser = Depends(current_user),
        context: AppContext = Depends(get_context),
    ):
        try:
            summary = await context.dashboard.build(user)
        except Exception:
            logger.exception("dashboard_failed", action="dashboard", resource="dashboard", owner_id=user.id)
            return error_response(500, "Erro ao carregar o painel")
        return summary.model_dump(mode="json")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
