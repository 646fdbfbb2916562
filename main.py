from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from shared.config.database import engine, Base
from shared.observability import setup_observability
from shared.security import limiter

# IMPORTANT: import models so they register with Base
from services.product_service import models as product_models
from services.settings_service import models as settings_models
from services.order_service import models as order_models

from services.order_service.notifications import dispatcher
from services.order_service.router import router as order_router
from services.risk_service.router import router as risk_router, public_router as risk_public_router

app = FastAPI(title="Storefront Orders", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(app, "storefront")

# --- SECURITY SETUP ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

SHIPPING_FIELD_ERRORS = {
    "name": "Invalid name",
    "phone": "Invalid phone number",
    "address": "Invalid address",
}


def validation_message(error: dict) -> str:
    """Maps a pydantic error to the single message the storefront shows."""
    ctx_error = (error.get("ctx") or {}).get("error")
    if isinstance(ctx_error, ValueError):
        return str(ctx_error)

    loc = [part for part in error.get("loc", ()) if part != "body"]
    # Unparseable JSON reports a character offset, not a field
    if error.get("type") == "json_invalid" or not loc or not isinstance(loc[0], str):
        return "Invalid request"
    if loc[0] == "items":
        return "Cart is empty" if len(loc) == 1 else "Invalid items"
    if loc[0] == "shipping":
        return SHIPPING_FIELD_ERRORS.get(loc[1] if len(loc) > 1 else "name", "Invalid name")
    return f"Invalid {loc[0]}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = validation_message(errors[0]) if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@app.on_event("shutdown")
async def shutdown_event():
    # Let detached notification tasks finish before the loop goes away
    await dispatcher.drain()


app.include_router(order_router)
app.include_router(risk_public_router)
app.include_router(risk_router)
