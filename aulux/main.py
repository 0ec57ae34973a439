import argparse
import logging
import sys

from aulux.core.app import AuluxApp

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'


def setup_basic_logging():
    """Log to stdout until the configured handlers are installed by AuluxApp."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._aulux_basic = True  # replaced once the configured handlers are installed
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='aulux',
        description='Aulux: Classroom reporting, notifications and attendance',
    )
    parser.add_argument('--config', default='config.yaml',
                        help='Path to the YAML config file (default: ./config.yaml)')
    parser.add_argument('--no-watch', action='store_true',
                        help='Do not reload the config file when it changes')
    return parser.parse_args(argv)


def main(argv=None):
    setup_basic_logging()
    args = parse_args(argv)
    logging.getLogger(__name__).debug(f"Starting with config {args.config}")

    app = AuluxApp(config_path=args.config, watch_config=not args.no_watch)
    app.run()


if __name__ == "__main__":
    main()
