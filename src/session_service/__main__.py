"""Run the Session service: ``python -m src.session_service``."""
from __future__ import annotations

import uvicorn

from src.session_service.main import create_app
from src.shared.config import SessionServiceConfig


def main() -> None:
    config = SessionServiceConfig()
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
