# video_annotater/__main__.py
from __future__ import annotations

import argparse
from typing import List, Optional

from .app import run_app


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="video_annotater", description="Trim-window annotation of video clips.")
    parser.add_argument("folder", nargs="?", help="folder with .mp4/.avi files to open on start")
    parser.add_argument("--config", dest="config_path", help="path to config.json")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    args = parser.parse_args(argv)
    return run_app(folder=args.folder, config_path=args.config_path, log_level=args.log_level)


if __name__ == "__main__":
    raise SystemExit(main())
