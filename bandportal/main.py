"""Band portal entrypoint."""

import uvicorn

from bandportal.config.settings import get_settings


def cli() -> None:
    """Serve the API; auto-reload follows DEBUG."""
    settings = get_settings()
    uvicorn.run(
        "bandportal.web.app:create_app",
        factory=True,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    cli()
