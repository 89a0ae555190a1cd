#!/usr/bin/env python3
"""
Run the Art Is Safe API with auto-reload.
Usage: python run.py
"""
import uvicorn
from artsafe.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "artsafe.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.APP_ENV == "development",
    )
