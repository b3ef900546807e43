"""Main entry point for the rules engine service"""

import sys
import argparse

import uvicorn

from rules_engine import __version__
from rules_engine.api.app import create_app
from rules_engine.config.settings import load_config, validate_config, VALID_LOG_LEVELS
from rules_engine.engine import Engine
from rules_engine.utils.logger import setup_logger


def parse_args(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description='Threshold rule evaluation and alerting service'
    )
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='Path to configuration file (YAML)')
    parser.add_argument('--log-level', '-l', type=str, choices=VALID_LOG_LEVELS, default=None,
                        help='Override log level')
    parser.add_argument('--host', type=str, default=None,
                        help='Override API bind address')
    parser.add_argument('--port', '-p', type=int, default=None,
                        help='Override API port')
    parser.add_argument('--version', '-v', action='version',
                        version=f'Rules Engine v{__version__}')
    return parser.parse_args(argv)


def apply_cli_overrides(config, args):
    """Apply command-line overrides on top of file and environment settings"""
    if args.log_level:
        config['service']['log_level'] = args.log_level
    if args.host:
        config['api']['host'] = args.host
    if args.port is not None:
        config['api']['port'] = args.port
    validate_config(config)
    return config


def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)

    try:
        config = apply_cli_overrides(load_config(args.config), args)

        logger = setup_logger(config)
        logger.info(f"Rules Engine v{__version__} "
                    f"({'config ' + args.config if args.config else 'default configuration'})")
        logger.info(f"Rules database: {config['storage']['sqlite_path']}, "
                    f"measurements: {config['measurements']['sqlite_path']}")
        if not config['realtime']['enabled']:
            logger.info("Realtime push disabled; alerts are only stored")

        engine = Engine(config)

        # The app lifespan starts and stops the evaluation thread
        uvicorn.run(
            create_app(engine),
            host=config['api']['host'],
            port=config['api']['port'],
            log_config=None,
        )
        return 0

    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
