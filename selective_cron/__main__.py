import sys

import uvicorn

from .commands import main
from .config import settings


def serve() -> None:
    """Serve the API; the app's lifespan starts the ticker."""
    uvicorn.run("selective_cron.main:app", host=settings.host, port=settings.port, reload=False)


if __name__ == "__main__":
    # With arguments act as the selective-cron command
    if len(sys.argv) > 1:
        raise SystemExit(main())
    serve()
