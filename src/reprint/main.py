import argparse
import logging

import uvicorn

from reprint.infra.config import ReprintConfig, load_config
from reprint.interfaces.api import create_app


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-Print recycler panel backend")
    parser.add_argument(
        "--config",
        type=str,
        default="config/reprint.yaml",
        help="Path to YAML configuration file",
    )
    parser.add_argument("--port", type=int, default=None, help="Override the API port")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    cfg: ReprintConfig = load_config(args.config)
    logging.basicConfig(
        level=getattr(logging, cfg.logging.level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(config=cfg, config_path=args.config)

    uvicorn.run(
        app,
        host=cfg.network.host,
        port=args.port or cfg.network.api_port,
    )


if __name__ == "__main__":
    main()
