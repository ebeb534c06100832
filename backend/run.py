"""Run the trader tracker backend server.

Uvicorn's own logging config is disabled so its access and error logs go
through the structlog pipeline set up in ``backend.main``.
"""
import uvicorn

from backend.config import BACKEND_HOST, BACKEND_PORT, BACKEND_RELOAD

if __name__ == "__main__":
    uvicorn.run(
        "backend.main:app",
        host=BACKEND_HOST,
        port=BACKEND_PORT,
        reload=BACKEND_RELOAD,
        log_config=None,
    )
