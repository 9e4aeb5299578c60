import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from operaciones.config import get_settings
from operaciones.services.notifier import build_notifier
from operaciones.services.payment_gateway import build_gateway
from operaciones.utils.clock import SystemClock

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _seed_admin_user() -> None:
    """Create the ``admin`` account on first start."""
    from operaciones.database import SessionLocal
    from operaciones.models.usuario import Usuario
    from operaciones.utils.security import hash_password

    db = SessionLocal()
    try:
        if db.query(Usuario).filter(Usuario.username == "admin").first() is not None:
            logger.debug("Admin user already present")
            return
        db.add(
            Usuario(
                username="admin",
                email="admin@operaciones.example.com",
                password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
                nombre_completo="Administrador",
                rol="ADMIN",
                activo=True,
            )
        )
        db.commit()
        logger.info("Admin user created (username=admin)")
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Could not seed admin user; run the migrations first", exc_info=True)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _seed_admin_user()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Process-wide collaborators, read by operaciones.dependencies
app.state.clock = SystemClock()
app.state.notifier = build_notifier(settings)
app.state.gateway = build_gateway(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get(f"{settings.API_PREFIX}/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from operaciones.routers import auth  # noqa: E402

app.include_router(auth.router, prefix=f"{settings.API_PREFIX}/auth")

# Field operations
from operaciones.routers import ordenes_trabajo  # noqa: E402

app.include_router(
    ordenes_trabajo.router,
    prefix=f"{settings.API_PREFIX}/ordenes-trabajo",
)

from operaciones.routers import cuadrillas  # noqa: E402

app.include_router(
    cuadrillas.router,
    prefix=f"{settings.API_PREFIX}/cuadrillas",
)

# Billing
from operaciones.routers import planes  # noqa: E402

app.include_router(
    planes.router,
    prefix=f"{settings.API_PREFIX}/planes",
)

from operaciones.routers import suscripciones  # noqa: E402

app.include_router(
    suscripciones.router,
    prefix=f"{settings.API_PREFIX}/suscripciones",
)
