#!/usr/bin/env python3
"""
AutoSocket - Prefab Index & Template CLI

Usage:
    autosocket scan [root]                  Build or refresh the prefab cache
    autosocket status                       Show cache status
    autosocket detect-root                  Find and remember the checkout root
    autosocket sockets <model.xob>          List sockets and how each resolved
    autosocket suggest <model.xob>          Prefab folders the sockets point into
    autosocket create <model.xob>           Write <stem>_test_prefab.et
    autosocket destruct <model.xob...> --preset FILE
    autosocket config                       Show or change saved settings
"""

import argparse
import logging
import os
import sys

from autosocket.errors import AutoSocketError


def _print_progress(level, message, current=None, total=None):
    # Warnings and errors already reach stderr through logging
    if level in ("info", "debug"):
        print(f"  {message}")


def _fail(error):
    print(f"ERROR: {error}")
    sys.exit(1)


def _resolve_scan_options(args):
    """Scan options cascade: CLI > saved settings > environment > default."""
    from autosocket import tools

    saved = tools.get_settings()
    root = args.root or saved.get("svn_root") or os.environ.get("SVN_ROOT") or None
    timing = True if getattr(args, "timing", False) else None
    return {"root": root, "verbose": bool(args.verbose), "timing": timing}


def cmd_scan(args):
    """Build or refresh the prefab cache."""
    from autosocket import tools

    options = _resolve_scan_options(args)
    if options["root"]:
        print(f"Scanning: {options['root']}")
    else:
        print("No root given; detecting checkout root...")

    try:
        result = tools.scan_prefab_index(progress=_print_progress, **options)
    except (AutoSocketError, OSError) as e:
        _fail(e)

    print()
    print("Scan complete:")
    print(f"  Entries: {result['entry_count']}")
    print(f"  Sidecars seen: {result['meta_seen']}")
    print(f"  Updated: {result['updated']}")
    print(f"  Removed: {result['removed_keys']}")
    print(f"  Cache: {result['cache_path']}")
    if "timing" in result:
        print(f"  Total time: {result['timing']['total_duration']:.1f}s")


def cmd_status(args):
    """Show prefab cache status."""
    from autosocket import tools

    status = tools.get_prefab_cache_status()
    if not status["has_cache"]:
        print("No prefab cache found.")
        print("Build it with: autosocket scan <root>")
        return

    print("Prefab Cache Status")
    print(f"  Cache: {status['cache_path']}")
    print(f"  Root: {status['svn_root'] or '(unknown)'}")
    print(f"  Generated: {status['generated'] or '(unknown)'}")
    print(f"  Prefabs: {status['prefab_count']}")


def cmd_detect_root(args):
    """Find the checkout root and remember it."""
    from autosocket import tools

    root = tools.auto_detect_svn_root()
    if not root:
        print("ERROR: No 'svn' checkout found")
        print("Set it with: autosocket config --svn-root <path>")
        sys.exit(1)
    print(f"Checkout root: {root}")


def cmd_sockets(args):
    """List a model's sockets with the prefab and tier each resolved to."""
    from autosocket import tools

    try:
        report = tools.resolve_model_sockets(args.model, use_blender=args.blender)
    except (AutoSocketError, OSError) as e:
        _fail(e)

    if not report["sockets"]:
        print(f"No sockets found for {report['model']}")
        return

    width = max(len(s["socket"]) for s in report["sockets"])
    for entry in report["sockets"]:
        if entry["prefab"]:
            print(f"  {entry['socket']:<{width}}  [{entry['tier']}]  {entry['prefab']}")
        else:
            print(f"  {entry['socket']:<{width}}  [unmatched]")
    print()
    print(f"Matched {report['matched']}/{report['total']} sockets")


def cmd_suggest(args):
    """Print prefab folders outside the checkout used by a model's sockets."""
    from autosocket import tools

    try:
        folders = tools.suggest_prefab_folders(args.model)
    except (AutoSocketError, OSError) as e:
        _fail(e)

    if not folders:
        print("No additional prefab folders.")
        return
    print("Prefab folders in use:")
    for folder in folders:
        print(f"  {folder}")


def cmd_create(args):
    """Write a test prefab for a model."""
    from autosocket import tools

    try:
        result = tools.create_template(
            args.model,
            save_dir=args.save_dir,
            use_blender=not args.no_blender,
            with_meta=args.meta,
            progress=_print_progress,
        )
    except (AutoSocketError, OSError) as e:
        _fail(e)

    print()
    print(f"Created: {result['et_path']}")
    if result.get("meta_path"):
        print(f"Meta: {result['meta_path']}")
    print(f"Sockets matched: {result['matched']}/{result['sockets']}")
    if result["suggested_extra_dirs"]:
        print("Prefab folders remembered:")
        for folder in result["suggested_extra_dirs"]:
            print(f"  {folder}")


def cmd_destruct(args):
    """Render a destructible preset for each model."""
    from autosocket import tools

    try:
        result = tools.generate_destructibles(
            args.models,
            args.preset,
            save_dir=args.save_dir,
            zones=args.zones,
            health=args.health,
            with_meta=args.meta,
            progress=_print_progress,
        )
    except (AutoSocketError, OSError) as e:
        _fail(e)

    print()
    print(f"Written: {len(result['written'])}")
    for path in result["written"]:
        print(f"  {path}")
    if result["failed"]:
        print(f"Failed: {len(result['failed'])}")
        for failure in result["failed"]:
            print(f"  {failure['model']}: {failure['error']}")
        sys.exit(1)


def cmd_config(args):
    """Show saved settings, updating any that were passed."""
    from autosocket import tools

    try:
        settings = tools.update_settings(
            svn_root=args.svn_root,
            save_dir=args.save_dir,
            blender_path=args.blender_path,
            extra_dirs=args.extra_dir,
        )
    except (AutoSocketError, OSError) as e:
        _fail(e)

    print("Settings:")
    print(f"  Checkout root: {settings['svn_root'] or '(not set)'}")
    print(f"  Save folder: {settings['save_dir'] or '(not set)'}")
    print(f"  Blender: {settings['blender_path'] or '(not set)'}")
    if settings["extra_dirs"]:
        print("  Extra prefab folders:")
        for folder in settings["extra_dirs"]:
            print(f"    {folder}")
    else:
        print("  Extra prefab folders: (none)")


def _configure_logging(verbose):
    from autosocket.core.config import DEBUG

    if DEBUG:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="AutoSocket - Prefab Index & Template Generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  autosocket scan D:\\svn
  autosocket status
  autosocket sockets Assets/Props/Crate.xob
  autosocket create Assets/Props/Crate.xob --meta
  autosocket destruct Wall_01.xob Wall_02.xob --preset presets/wall.et --zones 3
  autosocket config --blender-path "C:\\Program Files\\Blender Foundation\\Blender 4.1\\blender.exe"
""",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log progress details to stderr"
    )

    subparsers = parser.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser("scan", help="Build or refresh the prefab cache")
    scan_parser.add_argument(
        "root", nargs="?", help="Asset tree root (default: saved or detected checkout)"
    )
    scan_parser.add_argument(
        "--verbose", dest="scan_verbose", action="store_true",
        help="Report every updated record",
    )
    scan_parser.add_argument(
        "--timing",
        action="store_true",
        help="Enable timing instrumentation (also set AUTOSOCKET_SCAN_TIMING=1)",
    )

    subparsers.add_parser("status", help="Show prefab cache status")
    subparsers.add_parser("detect-root", help="Find and remember the checkout root")

    sockets_parser = subparsers.add_parser("sockets", help="List a model's sockets")
    sockets_parser.add_argument("model", help="Path to the .xob model")
    sockets_parser.add_argument(
        "--blender", action="store_true", help="Use Blender GUID hints from the model's .fbx"
    )

    suggest_parser = subparsers.add_parser(
        "suggest", help="Prefab folders used by a model's sockets"
    )
    suggest_parser.add_argument("model", help="Path to the .xob model")

    create_parser = subparsers.add_parser("create", help="Create a test prefab for a model")
    create_parser.add_argument("model", help="Path to the .xob model")
    create_parser.add_argument("--save-dir", help="Output folder (default: saved or model folder)")
    create_parser.add_argument(
        "--meta", action="store_true", help="Also write the .et.meta sidecar and update the cache"
    )
    create_parser.add_argument(
        "--no-blender", action="store_true", help="Skip Blender GUID hints"
    )

    destruct_parser = subparsers.add_parser(
        "destruct", help="Generate destructible templates from a preset"
    )
    destruct_parser.add_argument("models", nargs="+", help="Source .xob models")
    destruct_parser.add_argument("--preset", required=True, help="Preset .et file")
    destruct_parser.add_argument("--save-dir", help="Output folder (default: saved folder)")
    destruct_parser.add_argument("--zones", type=int, help="Zone count (1-26)")
    destruct_parser.add_argument("--health", type=float, help="Health per zone")
    destruct_parser.add_argument(
        "--meta", action="store_true", help="Also write .et.meta sidecars and update the cache"
    )

    config_parser = subparsers.add_parser("config", help="Show or change saved settings")
    config_parser.add_argument("--svn-root", help="Checkout root")
    config_parser.add_argument("--save-dir", help="Default output folder")
    config_parser.add_argument("--blender-path", help="Blender executable")
    config_parser.add_argument(
        "--extra-dir", action="append", help="Extra prefab folder (repeatable; replaces the list)"
    )

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "scan":
        if args.timing:
            os.environ["AUTOSOCKET_SCAN_TIMING"] = "1"
        args.verbose = args.scan_verbose
        cmd_scan(args)
    elif args.command == "status":
        cmd_status(args)
    elif args.command == "detect-root":
        cmd_detect_root(args)
    elif args.command == "sockets":
        cmd_sockets(args)
    elif args.command == "suggest":
        cmd_suggest(args)
    elif args.command == "create":
        cmd_create(args)
    elif args.command == "destruct":
        cmd_destruct(args)
    elif args.command == "config":
        cmd_config(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
