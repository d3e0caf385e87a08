"""mvm - MongoDB version manager.

    Returns:
        int: Exit code
"""
import logging
import sys

from constants import ExitCodes
from errors import MvmError, exit_code_for
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args
from cli_config import load_configuration
from cli_commands import build_components, dispatch


def main(argv=None):
    """Main function of the program."""
    logger = logging.getLogger(__name__)

    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)
    load_configuration(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.action)
        )

    try:
        code = dispatch(build_components(), args)
    except MvmError as exc:
        logger.error("%s", exc)
        sys.exit(exit_code_for(exc))
    except OSError as exc:
        logger.error("Filesystem error: %s", exc)
        sys.exit(ExitCodes.INSTALL_ERROR.value)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        sys.exit(130)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action=args.action, outcome=code)
        )
    sys.exit(code)


if __name__ == "__main__":
    main()
