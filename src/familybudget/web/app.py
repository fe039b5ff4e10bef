"""FastAPI application entry point."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from familybudget.core.config import configure_logging
from familybudget.core.errors import FinanceError
from familybudget.web.routes import (
    audit,
    budgets,
    categories,
    notifications,
    rules,
    team,
    tools,
    transactions,
)

configure_logging()

app = FastAPI(title="Family Budget API")


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(team.router, prefix="/team")
app.include_router(transactions.router, prefix="/transactions")
app.include_router(categories.router, prefix="/categories")
app.include_router(budgets.router, prefix="/budgets")
app.include_router(rules.router, prefix="/rules")
app.include_router(notifications.router, prefix="/notifications")
app.include_router(audit.router, prefix="/audit")
app.include_router(tools.router, prefix="/tools")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
