# somar/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from somar.config.settings import settings
from somar.config.database import engine
from somar.core.middleware import setup_middleware, setup_exception_handlers
from somar.api.v1.router import api_router
from somar.shared.database.models import Base
from somar.shared.services.config_provider import GlobalConfigProvider
from somar.shared.services.notifier import build_notifier
from somar.shared.services.receipt_storage import CloudinaryReceiptStorage

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    print("🚀 Somar Dispatch API Starting...")
    print(f"📍 Version: {settings.version}")
    print(f"🌍 Environment: {'Development' if settings.debug else 'Production'}")
    print(f"🗄️  Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else settings.database_url}")

    Base.metadata.create_all(bind=engine)

    app.state.config_provider = GlobalConfigProvider()
    app.state.receipt_storage = CloudinaryReceiptStorage()
    app.state.notifier = build_notifier()

    print(f"🧾 Comprobantes: {'Cloudinary' if app.state.receipt_storage.configured else 'sin configurar'}")
    print(f"📣 Notificaciones: {type(app.state.notifier).__name__}")

    yield

    # Shutdown
    app.state.notifier.shutdown()
    print("🛑 Somar Dispatch API Shutting down...")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Despacho de domicilios: pedidos, riders y guaca de efectivo",
    docs_url="/docs",
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)
setup_exception_handlers(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "🚀 Somar API - Despacho de domicilios",
        "version": settings.version,
        "status": "running",
        "environment": "production" if not settings.debug else "development",
        "docs": "/docs",
        "api": "/api/v1"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.version,
        "app": settings.app_name,
        "environment": "production" if not settings.debug else "development"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "somar.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
