from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional

from otbot.admins import fetch_admin_registry
from otbot.cache import StorageError, build_cache
from otbot.config import BotConfig, ConfigError
from otbot.moderation_bot import ModerationBot
from otbot.telegram_api import TelegramAPI


def load_env_file(path: str = ".env") -> None:
    env_path = Path(path)
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        val = value.strip()
        if (val.startswith('"') and val.endswith('"')) or (val.startswith("'") and val.endswith("'")):
            val = val[1:-1]
        elif "#" in val:
            val = val.split("#", 1)[0].rstrip()
        os.environ.setdefault(key, val)


def build_logger() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="otbot", description="Off-topic moderation bot for Telegram groups")
    parser.add_argument("-c", "--config", required=True, help="path to the TOML configuration file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    load_env_file()
    build_logger()
    log = logging.getLogger("otbot")
    try:
        config = BotConfig.from_file(args.config)
        cache = build_cache(config)
    except (ConfigError, StorageError) as exc:
        log.error("Configuration error: %s", exc)
        raise SystemExit(1) from exc

    api = TelegramAPI(config.token, timeout=config.request_timeout)
    admins = fetch_admin_registry(api, config.main_group)
    bot = ModerationBot(config, cache, admins, api)
    bot.run_forever()


if __name__ == "__main__":
    main()
