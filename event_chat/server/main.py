"""FastAPI application entrypoint for the event marketplace chat server."""
import uvicorn
from fastapi import FastAPI

from . import auth, chat, realtime, users
from .database import Base, engine
from .logging_config import configure_logging

logger = configure_logging()

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Event Marketplace Chat", version="1.0.0")
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(chat.router)
app.include_router(realtime.router)


@app.get("/api/health")
def health():
    return {"status": "ok"}


def run() -> None:
    logger.info("SERVER_START host=0.0.0.0 port=8000")
    uvicorn.run("event_chat.server.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
