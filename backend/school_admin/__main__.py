"""Runs the API with uvicorn: ``python -m school_admin``."""

import uvicorn

from school_admin.config import settings


def main() -> None:
    uvicorn.run(
        "school_admin.main:create_app",
        factory=True,
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
