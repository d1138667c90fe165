import logging

from fastapi import FastAPI

from storefront import config
from storefront.admin import router as admin_router
from storefront.database import Base, engine
from storefront.errors import install_error_handlers
from storefront.routes import router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="Homespun Storefront Orders")

app.include_router(router)
app.include_router(admin_router)
install_error_handlers(app)

Base.metadata.create_all(bind=engine)


@app.get("/health")
def health():
    return {"ok": True}
