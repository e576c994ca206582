import logging
import os
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from dotenv import load_dotenv

load_dotenv()

# Configura logger
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

# Importaciones locales (después de configurar logging para ver los intentos de conexión)
from user_service.db import engine, Base  # noqa: E402
from user_service.routers import auth, users  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Crea tablas si no existen al iniciar
    if engine is None:
        logger.error("Base de datos no disponible; el servicio responderá 503 en endpoints con BD.")
    else:
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables verified/created.")
        except Exception as e:
            logger.error(f"Error initializing database: {e}", exc_info=True)
    yield


# Inicializa FastAPI
app = FastAPI(
    title="User Service - PhysiPro",
    description="Handles registration, authentication and role-based administration of admin, trainer and student accounts.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- Configuración de CORS ---
origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Métricas Prometheus ---
REQUEST_COUNT = Counter(
    "user_requests_total",
    "Total requests processed by User Service",
    ["method", "endpoint", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "user_request_latency_seconds",
    "Request latency in seconds for User Service",
    ["endpoint"]
)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start_time = time.time()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as exc:
        logger.error(f"Unhandled exception during request processing: {exc}", exc_info=True)
        response = Response("Internal Server Error", status_code=500)
    finally:
        latency = time.time() - start_time
        # Usa la plantilla de la ruta para no crear una serie por cada UUID
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)

        REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency)
        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=status_code
        ).inc()

    return response


# --- Endpoints de Salud y Métricas ---
@app.get("/metrics", tags=["Monitoring"])
def metrics():
    """Exposes application metrics for Prometheus."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health", tags=["Monitoring"])
def health_check():
    """Performs a basic health check of the service."""
    return {"status": "ok", "service": "user_service", "database": engine is not None}


# --- Endpoints de API ---
app.include_router(auth.router)
app.include_router(users.router)


def run():
    """Punto de entrada de consola: levanta el servicio con uvicorn."""
    import uvicorn

    uvicorn.run(
        "user_service.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 8000)),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    run()
