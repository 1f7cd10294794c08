"""Long-running server entry point.

Run with ``python -m src.helpdesk.server`` or the ``helpdesk-proxy`` console
script. Listens on HOST/PORT from the environment.
"""

import logging

import uvicorn

from src.helpdesk.config import settings


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s - %(message)s")
    uvicorn.run("src.helpdesk.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
