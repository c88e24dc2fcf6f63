from fastapi import FastAPI

from .api import host

app = FastAPI(title="Host Health Report")

app.include_router(host.router, prefix="/host", tags=["host"])
