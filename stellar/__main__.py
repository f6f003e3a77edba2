from __future__ import annotations

import argparse
import logging

from .config import load_settings
from .game import run_game


def main() -> None:
    parser = argparse.ArgumentParser(prog="stellar", description="Collect every key, dodge the enemies, reach the spaceship.")
    parser.add_argument("--config", default="config/settings.yaml", help="settings file (YAML)")
    parser.add_argument("--seed", type=int, default=None, help="seed for entity placement")
    args = parser.parse_args()

    settings = load_settings(args.config)
    logging.basicConfig(
        level=getattr(logging, settings.logging.level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_game(args.config, seed=args.seed)


if __name__ == "__main__":
    main()
