#!/usr/bin/env python3
"""
Launch script for the trackfuse backend.

Usage:
    python run_server.py [data_folder] [--port PORT] [--host HOST] [--reload]

Endpoint documentation is served by FastAPI at /docs.
"""

import argparse
import logging
import os
from pathlib import Path

import uvicorn


logger = logging.getLogger("trackfuse.run_server")


def main():
    parser = argparse.ArgumentParser(description="trackfuse backend server")
    parser.add_argument(
        "data_folder",
        nargs="?",
        default="./data/activities",
        help="Folder of .gpx/.fit files (default: ./data/activities)",
    )
    parser.add_argument("--port", "-p", type=int, default=8000)
    parser.add_argument("--host", "-H", default="127.0.0.1")
    parser.add_argument("--reload", action="store_true", help="Reload on source changes")
    args = parser.parse_args()

    data_folder = Path(args.data_folder)
    if data_folder.is_dir():
        # Picked up by the FastAPI lifespan handler
        os.environ["TRACKFUSE_DATA_FOLDER"] = str(data_folder)
    else:
        logging.basicConfig(level=logging.INFO)
        logger.warning(f"Data folder not found: {data_folder.absolute()}; set one via POST /folder")

    uvicorn.run("trackfuse.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
