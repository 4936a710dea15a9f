#!/usr/bin/env python3
"""
Cache load-testing harness - Main Entry Point

Parses the command line, runs the harness and maps every outcome, including
errors raised before the run starts, to an EXIT_CODE.
"""

import signal
import sys
import traceback

import yaml

from cachebench.cb_logging import add_run_log, apply_logging_options, remove_run_log, setup_logging
from cachebench.cli import parse_arguments, build_config
from cachebench.config import CB_DEBUG, EXIT_CODE
from cachebench.errors import CacheBenchException, ConfigurationError
from cachebench.orchestrator import RunOrchestrator

logger = setup_logging("cachebench")
signal_received = False
active_orchestrator = None


def signal_handler(sig, frame):
    """Handle SIGINT (Ctrl+C) and SIGTERM.

    The first signal stops the active run cooperatively so the cache is closed
    and the partial report is written. A second signal exits immediately.
    """
    global signal_received

    signal_name = signal.Signals(sig).name
    logger.warning(f"Received signal {signal_name} ({sig})")

    if active_orchestrator is not None and not signal_received:
        signal_received = True
        active_orchestrator.request_stop()
        return

    signal_received = True
    logger.info("Exiting due to signal")
    sys.exit(EXIT_CODE.INTERRUPTED)


def run_harness(config, cache=None):
    """
    Run one harness pass with signal handling bound to its orchestrator.

    When the configuration has a report_output_path, the run's log is also
    written to cachebench.log in that directory.
    """
    global active_orchestrator

    run_log = None
    if config.report_output_path:
        try:
            run_log = add_run_log(logger, config.report_output_path)
        except OSError as e:
            logger.warning(f"Cannot write the run log to {config.report_output_path}: {e}")

    orchestrator = RunOrchestrator(config, cache=cache, logger=logger)
    active_orchestrator = orchestrator
    try:
        return orchestrator.run()
    finally:
        active_orchestrator = None
        if run_log is not None:
            remove_run_log(logger, run_log)


def _main_impl(argv=None):
    """
    Main implementation with error handling.

    This is the actual implementation of main(), separated out
    so that main() can wrap it with exception handling.
    """
    global signal_received
    signal_received = False

    args = parse_arguments(argv)
    if CB_DEBUG:
        args.debug = True
    apply_logging_options(logger, args)

    config = build_config(args)

    if args.command == "configview":
        config.validate()
        print(yaml.safe_dump(config.as_dict(), sort_keys=False), end="")
        return EXIT_CODE.SUCCESS

    previous_handlers = {sig: signal.signal(sig, signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        result = run_harness(config)
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)

    return result.exit_code


def main(argv=None):
    """
    Main entry point with comprehensive error handling.

    This function wraps _main_impl() to catch and handle all
    exceptions with user-friendly error messages.
    """
    try:
        return _main_impl(argv)

    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CODE.CONFIG_ERROR

    except CacheBenchException as e:
        logger.error(str(e))
        return EXIT_CODE.FAILURE

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_CODE.INTERRUPTED

    except SystemExit:
        raise

    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}")

        if CB_DEBUG:
            logger.debug("Stack trace:")
            traceback.print_exc()
        else:
            logger.info("Run with CB_DEBUG=true for full stack trace")

        return EXIT_CODE.FAILURE


if __name__ == "__main__":
    sys.exit(main())
