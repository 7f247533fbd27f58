#!/usr/bin/env python
"""Django's command-line utility for administrative tasks (dev mode)."""
import os
import sys


def main():
    # Dev settings: SQLite, DEBUG=True, demo carrier when no token is set
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "shipdesk.settings_dev")
    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Make sure it's installed:\n"
            "  pip install -e .[test]"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
