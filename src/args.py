"""Argument parsing functionality for mvm."""

import argparse

# Commands whose trailing tokens are handed to the build toolchain or binary untouched
PASSTHROUGH_ACTIONS = ("install", "latest", "stable", "custom", "use")


def _add_passthrough(parser, dest, help_text):
    parser.add_argument(dest,
                        help=help_text,
                        nargs=argparse.REMAINDER,
                        default=[])


def build_parser():
    """Build the top-level parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="mvm",
        description="mvm - MongoDB version manager: build, install and switch server versions",
        add_help=True,
    )

    parser.add_argument("--latest",
                        dest="SHOW_LATEST",
                        help="Output the latest version available",
                        action="store_true")
    parser.add_argument("--stable",
                        dest="SHOW_STABLE",
                        help="Output the latest stable version available",
                        action="store_true")
    parser.add_argument("--prefix",
                        dest="PREFIX",
                        help="Installation prefix (default: /usr/local or $MVM_PREFIX)",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to YAML configuration file",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    sub = parser.add_subparsers(dest="action", metavar="command")

    sub.add_parser("installed", help="Output versions installed (default)")
    sub.add_parser("ls", help="Output the versions available remotely")

    p_install = sub.add_parser("install", help="Install and/or activate a version")
    p_install.add_argument("TARGET", help="Version, 'latest' or 'stable'")
    p_install.add_argument("--force", dest="FORCE", action="store_true",
                           help="Rebuild even if already installed")
    _add_passthrough(p_install, "BUILD_OPTIONS", "Build options passed to the toolchain")

    for name, help_text in (("latest", "Install or activate the latest release"),
                            ("stable", "Install or activate the latest stable release")):
        p_sym = sub.add_parser(name, help=help_text)
        p_sym.add_argument("--force", dest="FORCE", action="store_true",
                           help="Rebuild even if already installed")
        _add_passthrough(p_sym, "BUILD_OPTIONS", "Build options passed to the toolchain")

    p_custom = sub.add_parser("custom", help="Install a version from a local source tarball")
    p_custom.add_argument("VERSION", help="Version the tarball contains")
    p_custom.add_argument("ARCHIVE", help="Path to the source tarball")
    p_custom.add_argument("--force", dest="FORCE", action="store_true",
                          help="Rebuild even if already installed")
    _add_passthrough(p_custom, "BUILD_OPTIONS", "Build options passed to the toolchain")

    p_activate = sub.add_parser("activate", help="Switch the active version")
    p_activate.add_argument("VERSION")

    p_use = sub.add_parser("use", help="Execute mongod of a version with [args ...]")
    p_use.add_argument("VERSION")
    _add_passthrough(p_use, "RUN_ARGS", "Arguments for mongod")

    p_bin = sub.add_parser("bin", help="Output bin path for a version")
    p_bin.add_argument("VERSION")

    p_rm = sub.add_parser("rm", help="Remove the given version(s)")
    p_rm.add_argument("VERSIONS", nargs="+")

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program.

    Unknown dash-prefixed tokens after a passthrough command (``mvm latest
    --ssl``) are folded into that command's passthrough list; anywhere else
    they are an error.
    """
    parser = build_parser()
    args, extras = parser.parse_known_args(argv)

    if args.action is None:
        args.action = "installed"

    dest = "RUN_ARGS" if args.action == "use" else "BUILD_OPTIONS"
    if args.action in PASSTHROUGH_ACTIONS:
        tokens = list(extras) + list(getattr(args, dest, []) or [])
        if tokens and tokens[0] == "--":
            tokens = tokens[1:]
        setattr(args, dest, tokens)
    elif extras:
        parser.error(f"unrecognized arguments: {' '.join(extras)}")

    return args
