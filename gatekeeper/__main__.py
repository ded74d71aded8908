"""Run the gatekeeper with uvicorn: python -m gatekeeper"""

import uvicorn

from gatekeeper.config import settings


def main() -> None:
    uvicorn.run(
        "gatekeeper.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
