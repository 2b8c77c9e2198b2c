"""
Example: load packages from a package server and print what they contain.

Usage:
    python3 loading_demo.py --base-url http://localhost:8080 --app-name game --package home --package shop
    python3 loading_demo.py ... --database-url sqlite+pysqlite:///./data/package_cache.db
"""

import argparse
import asyncio
import logging
from pathlib import Path

from client_packages.loader import LoaderSettings, build_loader


def setup_logging(log_dir: Path):
    log_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_dir / "loader.log", encoding="utf-8"),
        ],
        force=True,
    )


def print_script(source, package):
    print(f"[{package.name}] script of {len(source)} characters received")


async def run(settings: LoaderSettings, package_names):
    loader = build_loader(settings, script_sink=print_script)
    loader.on("offline", lambda error: print(f"offline: {error}"))
    loader.on("maintenance", lambda error: print(f"server in maintenance: {error}"))
    loader.on("online", lambda error: print("online"))
    try:
        packages = await loader.fetch_packages(package_names)
        await loader.wait_idle()
    finally:
        loader.close()

    for package in packages:
        summary = package.summary()
        print(f"{summary.name}: content={summary.content_types} containers={summary.containers}")
        if package.content.get("text/html"):
            container = loader.display_package(package.name)
            print(f"  displayed {len(container.content)} characters of HTML")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", required=True, help="Package server base URL")
    parser.add_argument("--app-name", required=True, help="Application name")
    parser.add_argument("--package", action="append", required=True, dest="packages", help="Package to load (repeatable)")
    parser.add_argument("--language", default="en", help="Language to request")
    parser.add_argument("--density", default=1.0, type=float, help="Pixel density to request")
    parser.add_argument("--screen", default="1280x720", help="Screen resolution WIDTHxHEIGHT")
    parser.add_argument("--redis-url", default=None, help="Cache packages in Redis")
    parser.add_argument("--database-url", default=None, help="Cache packages in a SQL database")
    parser.add_argument("--log-dir", default=Path("./logs"), type=Path, help="Directory for the log file")
    args = parser.parse_args()

    setup_logging(args.log_dir)

    width, height = (int(v) for v in args.screen.lower().split("x"))
    settings = LoaderSettings(
        app_name=args.app_name,
        base_url=args.base_url,
        languages=[args.language],
        densities=[args.density],
        screen_width=width,
        screen_height=height,
        redis_url=args.redis_url,
        database_url=args.database_url,
    )
    asyncio.run(run(settings, args.packages))
    print("finished")


if __name__ == "__main__":
    main()
