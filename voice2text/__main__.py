"""Run the API server with uvicorn."""

import uvicorn

from voice2text.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "voice2text.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
