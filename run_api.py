"""Run FastAPI server."""
import uvicorn

from establishment.api.main import app
from establishment.config import settings
from establishment.logging_config import setup_logging

if __name__ == "__main__":
    setup_logging(settings)
    print(f"Starting FastAPI on http://{settings.server.host}:{settings.server.port}")
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)
