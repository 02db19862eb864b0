import logging
from typing import List
from gtbare.local.console.handler import display_status, handle_check_config, handle_start, print_help

log = logging.getLogger(__name__)


def execute_command(command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param command: The main command string (e.g., 'start', 'status').
    :param args: A list of arguments for the command.
    :return bool: True if the command succeeded, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": lambda: handle_start(args),
        "status": lambda: display_status(args),
        "check-config": lambda: handle_check_config(args),
        "help": lambda: print_help() or True,
    }

    if command not in command_map:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return False
    return bool(command_map[command]())
