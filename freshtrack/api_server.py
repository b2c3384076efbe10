"""FastAPI server exposing the ledger and the scan intake.

The nightly alert refresh scheduler is embedded in this process so a single
service handles both requests and the periodic refresh.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, HTTPException, Depends
from fastapi.responses import JSONResponse

from .schemas import (
    ImportRequest,
    MovementCreate,
    ProductCreate,
    ProductUpdate,
    ScanCreateProduct,
    ScanEvent,
)
from .scheduler import create_background_scheduler
from .services.data_transfer import build_export, export_filename, import_document
from .services.inventory_service import InventoryService
from .utils.config import get_config
from .utils.exceptions import (
    AlertNotFoundError,
    BaseAppException,
    PersistenceError,
    ProductNotFoundError,
    ValidationError,
)
from .utils.logger import get_api_logger

VERSION = "1.0.0"


def get_service(request: Request) -> InventoryService:
    return request.app.state.service


def create_app(service: Optional[InventoryService] = None, enable_scheduler: Optional[bool] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        service: Inventory service to serve, built from configuration if omitted
        enable_scheduler: Start the nightly alert refresh, defaults to on
            unless a service was injected
    """
    config = get_config()
    logger = get_api_logger()
    if enable_scheduler is None:
        enable_scheduler = service is None

    # ------------------------------------------------------------------
    # Lifespan
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info("FreshTrack API Server Starting")
        logger.info("=" * 60)
        logger.info(f"Environment:          {config.env.environment}")
        logger.info(f"Port:                 {config.env.port}")
        logger.info(f"Storage:              {config.storage.backend} ({config.storage.data_dir})")
        logger.info(f"Scan cooldown:        {config.scanner.cooldown_ms} ms")
        logger.info("=" * 60)

        app.state.service.load()

        scheduler = None
        if enable_scheduler:
            scheduler = create_background_scheduler(app.state.service)
            scheduler.start()
            logger.info("Alert refresh scheduler started")

        yield

        if scheduler is not None:
            logger.info("Shutting down alert refresh scheduler...")
            scheduler.shutdown(wait=True)
        app.state.service.close()
        logger.info("API server shut down.")

    app = FastAPI(
        title="FreshTrack Inventory API",
        description="Perishable-goods ledger, alerts and barcode scan intake",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.service = service or InventoryService()

    @app.get("/")
    async def root():
        return {"service": "FreshTrack Inventory API", "version": VERSION, "status": "running"}

    @app.get("/health")
    async def health_check(svc: InventoryService = Depends(get_service)):
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "environment": config.env.environment,
            "scanner": svc.scanner.state,
        }

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @app.get("/products")
    def list_products(q: str = "", category: Optional[str] = None,
                      svc: InventoryService = Depends(get_service)):
        now = svc.clock()
        return [
            {**p.to_dict(), "status": svc.alert_engine.status_of(p, now)}
            for p in svc.store.search_products(q, category)
        ]

    @app.get("/products/categories")
    def list_categories(svc: InventoryService = Depends(get_service)):
        return svc.store.categories()

    @app.get("/products/summary")
    def inventory_summary(svc: InventoryService = Depends(get_service)):
        return svc.alert_engine.summary()

    @app.get("/products/{product_id}")
    def get_product(product_id: str, svc: InventoryService = Depends(get_service)):
        product = svc.store.get_product(product_id)
        return {
            **product.to_dict(),
            "status": svc.alert_engine.status_of(product),
            "alerts": [a.to_dict() for a in svc.store.alerts_for(product_id)],
        }

    @app.post("/products", status_code=201)
    def create_product(body: ProductCreate, svc: InventoryService = Depends(get_service)):
        return svc.processor.create_product(**body.model_dump()).to_dict()

    @app.patch("/products/{product_id}")
    def update_product(product_id: str, body: ProductUpdate, svc: InventoryService = Depends(get_service)):
        changes = body.model_dump(exclude_unset=True)
        return svc.processor.update_product(product_id, **changes).to_dict()

    @app.delete("/products/{product_id}")
    def delete_product(product_id: str, svc: InventoryService = Depends(get_service)):
        product = svc.processor.delete_product(product_id)
        return {"status": "deleted", "id": product.id}

    # ------------------------------------------------------------------
    # Movements and alerts
    # ------------------------------------------------------------------

    @app.get("/movements")
    def list_movements(type: Optional[str] = None, product_id: Optional[str] = None,
                       svc: InventoryService = Depends(get_service)):
        movements = svc.store.movements_for(product_id) if product_id else svc.store.filter_movements(type)
        if product_id and type:
            movements = [m for m in movements if m.type == type]
        return [m.to_dict() for m in movements]

    @app.post("/movements", status_code=201)
    def create_movement(body: MovementCreate, svc: InventoryService = Depends(get_service)):
        data = body.model_dump()
        data["user"] = data["user"] or config.env.default_user
        return svc.processor.apply_movement(**data).to_dict()

    @app.get("/alerts")
    def list_alerts(include_acknowledged: bool = True, svc: InventoryService = Depends(get_service)):
        return [
            a.to_dict() for a in svc.store.alerts
            if include_acknowledged or not a.acknowledged
        ]

    @app.post("/alerts/refresh")
    def refresh_alerts(svc: InventoryService = Depends(get_service)):
        return [a.to_dict() for a in svc.refresh_alerts()]

    @app.post("/alerts/{alert_id}/acknowledge")
    def acknowledge_alert(alert_id: str, svc: InventoryService = Depends(get_service)):
        return svc.alert_engine.acknowledge(alert_id).to_dict()

    # ------------------------------------------------------------------
    # Scan intake
    # ------------------------------------------------------------------

    @app.post("/scans")
    def receive_scan(body: ScanEvent, svc: InventoryService = Depends(get_service)):
        outcome = svc.scanner.handle_scan(body.code)
        return {**outcome.to_dict(), "state": svc.scanner.state}

    @app.post("/scans/confirm", status_code=201)
    def confirm_scan(body: ScanCreateProduct, svc: InventoryService = Depends(get_service)):
        product = svc.scanner.confirm_create(**body.model_dump())
        return {"product": product.to_dict(), "state": svc.scanner.state}

    @app.post("/scans/cancel")
    def cancel_scan(svc: InventoryService = Depends(get_service)):
        cancelled = svc.scanner.cancel_create()
        return {"cancelled": cancelled, "state": svc.scanner.state}

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    @app.get("/export")
    def export_data(svc: InventoryService = Depends(get_service)):
        now = svc.clock()
        document = build_export(svc.store, now, config.export.version, config.export.format)
        return JSONResponse(
            content=document,
            headers={"Content-Disposition": f'attachment; filename="{export_filename(now)}"'},
        )

    @app.post("/import")
    def import_data(body: ImportRequest, svc: InventoryService = Depends(get_service)):
        return {"status": "imported", "counts": import_document(svc.store, body.document, body.mode)}

    # ------------------------------------------------------------------
    # Exception handlers
    # ------------------------------------------------------------------

    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException):
        if isinstance(exc, (ProductNotFoundError, AlertNotFoundError)):
            status_code = 404
        elif isinstance(exc, ValidationError):
            status_code = 422
        elif isinstance(exc, PersistenceError):
            status_code = 503
        else:
            status_code = 500
        logger.warning(f"HTTP {status_code}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "details": exc.details, "status_code": status_code},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning(f"HTTP {exc.status_code}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if not config.is_production else "An error occurred",
            },
        )

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "freshtrack.api_server:create_app",
        factory=True,
        host="0.0.0.0",
        port=get_config().env.port,
        reload=not get_config().is_production,
    )
