"""Argument parsing functionality for Mosaic."""

import argparse


def build_parser():
    """Build the top-level parser with one subcommand per action."""
    parser = argparse.ArgumentParser(
        prog="mosaic",
        description="Mosaic - Polytoria package manager",
        add_help=True,
    )

    parser.add_argument("--api-url",
                        dest="API_URL",
                        help="Override the registry API URL",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("-C", "--project-dir",
                        dest="PROJECT_DIR",
                        help="Project directory (default: current directory)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    sub = parser.add_subparsers(dest="COMMAND", metavar="<command>")
    sub.required = True

    sub.add_parser("init", help="Initialize a new mosaic project")

    install = sub.add_parser("install", help="Install a package, or every manifest dependency")
    install.add_argument("PACKAGE",
                         help="Package query, e.g. logger or logger@1.0.0",
                         nargs="?",
                         type=str)

    remove = sub.add_parser("remove", help="Remove a package")
    remove.add_argument("PACKAGE", help="Package name to remove", type=str)

    sub.add_parser("list", help="List all installed packages")
    sub.add_parser("update", help="Update all dependencies to their latest versions")

    search = sub.add_parser("search", help="Search the registry")
    search.add_argument("QUERY", help="Search query", type=str)

    info = sub.add_parser("info", help="Show registry details for a package")
    info.add_argument("PACKAGE", help="Package name", type=str)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
