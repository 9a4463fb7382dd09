"""
Play Ripper CLI - 节目下载与进度查询命令行工具
"""
import argparse
import os
import sys

from play_ripper.progress import STDIN_PATH, ProgressIndeterminate, monitor
from play_ripper.ripper import Ripper
from play_ripper.utils.config import RipOptions, load_config
from play_ripper.utils.logger import logger, set_level


def main(argv=None):
    cfg = load_config()

    parser = argparse.ArgumentParser(
        description="Play Ripper: rip programs from SVT Play / Öppet arkiv or a direct HLS URL"
    )
    parser.add_argument(
        "urls",
        nargs="+",
        metavar="URL",
        help="Program page URL or .m3u8 stream URL"
    )
    parser.add_argument(
        "--output_dir",
        type=str,
        default=None,
        help=f"Output directory (default: {cfg.output_dir})"
    )
    parser.add_argument(
        "-b", "--background",
        action="store_true",
        default=None,
        help="Run encodes in the background with per-job log files"
    )
    parser.add_argument(
        "-j", "--max_jobs",
        type=int,
        default=None,
        help="Maximum number of concurrent background encodes (0 = unlimited)"
    )
    parser.add_argument(
        "-f", "--overwrite",
        action="store_true",
        default=None,
        help="Overwrite existing output and subtitle files"
    )
    parser.add_argument(
        "-s", "--subtitles",
        action="store_true",
        default=None,
        help="Also save subtitles as a sibling .srt file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logs"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        set_level("DEBUG")
    logger.debug(f"Config: {cfg.to_dict()}")

    opts = RipOptions.from_config(
        cfg,
        output_dir=args.output_dir,
        background=args.background,
        max_jobs=args.max_jobs,
        overwrite=args.overwrite,
        subtitles=args.subtitles,
    )

    logger.info("Starting Play Ripper...")
    logger.info(f"Output directory: {opts.output_dir}")

    if not os.path.exists(opts.output_dir):
        try:
            os.makedirs(opts.output_dir)
            logger.info(f"Created directory: {opts.output_dir}")
        except OSError as e:
            logger.error(f"Failed to create directory {opts.output_dir}: {e}")
            sys.exit(1)

    ripper = Ripper(cfg)
    try:
        results = ripper.run(args.urls, opts)
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        sys.exit(130)

    failed = [r for r in results if r.failed]
    if failed:
        logger.error(f"{len(failed)} of {len(results)} sources failed")
        sys.exit(1)


def progress_main(argv=None):
    parser = argparse.ArgumentParser(
        description="Print encoding progress (percent) from an encoder log"
    )
    parser.add_argument(
        "log",
        nargs="?",
        default=STDIN_PATH,
        help="Encoder log file, or '-' to follow standard input (default: -)"
    )
    args = parser.parse_args(argv)

    try:
        monitor(args.log)
    except ProgressIndeterminate as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Cannot read {args.log}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
