import sys
import logging
from typing import List, Optional

from gtbare import settings
from gtbare.log.setup import setup_logging
from gtbare.local import console
from gtbare.local.errors import ConfigError

log = logging.getLogger("console")


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the command line."""
    args = list(sys.argv[1:] if argv is None else argv)
    if "--verbose" in args:
        settings.VERBOSE_LOGGING = True
        args.remove("--verbose")

    setup_logging(logging.DEBUG if settings.VERBOSE_LOGGING else logging.INFO)

    if not args:
        console.print_help()
        return 1

    command, args = args[0].lower(), args[1:]
    try:
        return 0 if console.execute_command(command, args) else 1
    except ConfigError as e:
        log.error(f"Configuration error: {e}")
        return 2
    except Exception as e:
        log.critical(f"An unexpected error occurred: {e}", exc_info=True)
        return 1

if __name__ == "__main__":
    sys.exit(main())
