"""
Main entry point for the Knowledge RAG service.
"""

import uvicorn
from .config.settings import get_settings


def main():
    """Start the API server."""
    settings = get_settings()

    uvicorn.run(
        "knowledge_rag.core.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
