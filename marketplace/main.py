import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace import config
from marketplace.admin.routes import admin_router
from marketplace.api import assignment_router, payment_router
from marketplace.api.user_router import router as user_router
from marketplace.errors import MarketplaceError

load_dotenv()
logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI(title="Assignment Marketplace")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Подключаем роутеры
app.include_router(admin_router)
app.include_router(assignment_router.router, prefix="/api")
app.include_router(payment_router.router, prefix="/api")
app.include_router(user_router, prefix="/api")


@app.exception_handler(MarketplaceError)
async def handle_marketplace_error(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logging.warning("%s on %s: %s", exc.__class__.__name__, request.url.path, exc.message)
    body = {"error": exc.__class__.__name__, "detail": exc.message}
    reference = getattr(exc, "reference", None)
    if reference:
        body["reference"] = reference
    return JSONResponse(status_code=exc.status_code, content=body)


@app.get("/health")
async def health():
    return {"status": "ok"}
