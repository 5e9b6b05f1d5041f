"""
Ticketdesk - FastAPI Backend
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from ticketdesk.config import get_settings
from ticketdesk.routes import health
from ticketdesk.services.cache import get_cache

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Redis is optional; a failed connect leaves the cache in pass-through mode
    cache = get_cache()
    await cache.connect()
    yield
    await cache.close()


app = FastAPI(
    title="Ticketdesk",
    description="Support ticket backend with intelligent moderator assignment",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)


@app.get("/")
async def root():
    return {"message": "Ticketdesk API", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)
