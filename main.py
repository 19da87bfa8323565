"""
Entry point for phraseloop.

Run this file directly to start the FastAPI server:
    python main.py

Or use uvicorn directly:
    uvicorn phraseloop.main:app --reload --host 0.0.0.0 --port 8000
"""

import uvicorn

from phraseloop.config import settings


def main() -> None:
    """
    Start the uvicorn server.

    Server configuration can be overridden via environment variables:
    - HOST: Server host (default: 0.0.0.0)
    - PORT: Server port (default: 8000)
    - SUBTITLE_PROVIDER: "supadata" or "yt-dlp"
    - SUPADATA_API_KEY: Required for the supadata provider
    - YT_DLP_PATH: Optional yt-dlp executable; the bundled module is used otherwise
    """
    print("=" * 60)
    print("phraseloop subtitle service")
    print("=" * 60)
    print(f"Starting server on http://{settings.host}:{settings.port}")
    print(f"  - Provider: {settings.subtitle_provider}")
    print(f"  - Impersonate: {settings.ytdlp_impersonate_target}")
    print("=" * 60)

    uvicorn.run(
        "phraseloop.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
