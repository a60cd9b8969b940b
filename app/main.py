from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.classes.classes_router import router as classes_router
from app.api.v1.reference_data.reference_router import router as reference_router
from app.core.config import settings
from app.core.logging import setup_logging


def create_app() -> FastAPI:
    setup_logging(settings)

    app = FastAPI(title="Training Class Management Backend", debug=settings.debug)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(classes_router)
    app.include_router(reference_router)

    return app


app = create_app()
