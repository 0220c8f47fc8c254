from siteqa.routers.ingest import router as ingest_router
from siteqa.routers.chat import router as chat_router

__all__ = ["ingest_router", "chat_router"]
