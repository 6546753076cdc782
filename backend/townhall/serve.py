from __future__ import annotations
import uvicorn
from townhall.config import settings


def main():
    uvicorn.run(
        "townhall.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "dev",
        log_config=None,  # logging_setup owns the handlers
    )


if __name__ == "__main__":
    main()
