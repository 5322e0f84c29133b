"""Run the API with uvicorn: ``python -m expense_tracker``."""

import uvicorn

from expense_tracker.core.config import get_settings
from expense_tracker.main import create_app


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
