from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.logging_config import setup_logging
from app.api.v1.dues.router import router as dues_router
from app.api.v1.fee_categories.router import router as fee_categories_router
from app.api.v1.hostels.router import router as hostels_router
from app.api.v1.ledger.expense_router import router as expenses_router
from app.api.v1.ledger.income_router import router as income_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.reports.router import router as reports_router
from app.api.v1.rooms.router import router as rooms_router
from app.api.v1.students.router import router as students_router


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Hostel Ledger Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(hostels_router)
    app.include_router(students_router)
    app.include_router(rooms_router)
    app.include_router(fee_categories_router)
    app.include_router(dues_router)
    app.include_router(payments_router)
    app.include_router(income_router)
    app.include_router(expenses_router)
    app.include_router(reports_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
