"""Run the room API with uvicorn."""

from __future__ import annotations

import argparse

from quizroom.backend.config import configure_logging, load_settings


def parse_args(default_host: str, default_port: int) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Quiz room API server")
    parser.add_argument("--host", default=default_host)
    parser.add_argument("--port", type=int, default=default_port)
    return parser.parse_args()


def main() -> int:
    settings = load_settings()
    args = parse_args(default_host=settings.host, default_port=settings.port)
    configure_logging(settings.log_level)

    import uvicorn

    from quizroom.backend.api import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
