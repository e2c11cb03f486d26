from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.auth.router import router as admins_router
from app.api.v1.auth.router import token_router
from app.api.v1.classrooms.router import router as classrooms_router
from app.api.v1.schools.router import router as schools_router
from app.api.v1.students.router import router as students_router
from app.core.logging import setup_logging
from app.core.responses import install_error_handlers


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="School Management Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    # Routers
    app.include_router(admins_router)
    app.include_router(token_router)
    app.include_router(schools_router)
    app.include_router(classrooms_router)
    app.include_router(students_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"ok": True}

    return app


app = create_app()
