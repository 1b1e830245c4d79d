import argparse
import asyncio
import sys
from pathlib import Path

import services.error as error
import services.logger as log
import services.util as u
import services.config_io as config_io
from services.bridge import Bridge
from services.error import ConfigError

from drivers.game import GameDriver
from drivers.napcat import NapCatDriver

l = log.get_logger()


def cmd_convert(src: str, dst: str) -> None:
    src_path = Path(src)
    dst_path = Path(dst)

    if not src_path.is_file():
        print(f"Error: source file not found: {src_path}", file=sys.stderr)
        sys.exit(1)

    try:
        data = config_io.load_config(src_path)
    except Exception as e:
        print(f"Error reading {src_path}: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        config_io.save_config(data, dst_path)
    except Exception as e:
        print(f"Error writing {dst_path}: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Converted {src_path} → {dst_path}")


async def main():
    error.install_excepthook()
    log_file = log.enable_file_log()
    l.info(f"OneBotBridge starting… (log file: {log_file})")

    config_path = config_io.find_config(Path(u.get_data_path()))
    if config_path is None:
        l.critical(f"No config file found in: {u.get_data_path()} (tried config.json / .yaml / .toml)")
        return

    l.info(f"Loading config from: {config_path}")
    try:
        config = config_io.load_app_config(config_path)
    except ConfigError as exc:
        l.critical(str(exc))
        return

    log.register_sensitive(config.secrets())

    if not config.bridge.enable_groups:
        l.warning("bridge.enable_groups is empty — nothing will be relayed")

    bridge = Bridge(config.bridge)
    drivers = [NapCatDriver(config.napcat, bridge), GameDriver(config.game, bridge)]

    def _on_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            l.error(f"Driver '{task.get_name()}' crashed: {exc}")

    driver_tasks: list[asyncio.Task] = []
    for drv in drivers:
        task = asyncio.create_task(drv.start(), name=drv.name)
        task.add_done_callback(_on_task_done)
        driver_tasks.append(task)
        l.info(f"Started driver: {drv.name}")

    try:
        await asyncio.gather(*driver_tasks, return_exceptions=True)
    except asyncio.CancelledError:
        l.info("OneBotBridge shutting down…")
        for task in driver_tasks:
            task.cancel()
        await asyncio.gather(*driver_tasks, return_exceptions=True)
        l.info("OneBotBridge stopped.")


def run():
    parser = argparse.ArgumentParser(prog="onebot-bridge", description="QQ group ⇄ game server bridge")
    subparsers = parser.add_subparsers(dest="command")

    conv = subparsers.add_parser("convert", help="Convert a config file between formats (json/yaml/toml)")
    conv.add_argument("src", help="Source config file (e.g. config.json)")
    conv.add_argument("dst", help="Destination config file (e.g. config.yaml)")

    args = parser.parse_args()

    if args.command == "convert":
        cmd_convert(args.src, args.dst)
        sys.exit(0)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
