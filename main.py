"""
Main Application Entry Point

FastAPI application serving rate-limited page translation sessions.
"""

# Standard library
import os

# Third-party
import uvicorn

# Local application
from core.app_factory import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )
