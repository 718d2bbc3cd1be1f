from __future__ import annotations

import argparse
import os
import sys
from typing import Callable, List, Optional, Tuple

from .config import (
    APPDATA_DIR,
    SETTINGS_FILE,
    VERSION,
    EngineSettings,
    SuppressionRules,
    consume_load_warnings,
    ensure_runtime_files,
)
from .controller import AdBlockerController
from .errors import SnapshotError
from .event_engine import AdSuppressionEngine
from .logging_setup import setup_logging
from .patterns import PatternMatcher
from .scheduling import ManualScheduler
from .snapshot import load_document


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"Page AdBlocker v{VERSION}")
    parser.add_argument("--snapshot", type=str, default=None, help="Run the engine over a JSON tree snapshot")
    parser.add_argument(
        "--watch",
        type=float,
        default=None,
        help="Seconds of virtual time to run after page load (default: through the delayed re-sweeps)",
    )
    parser.add_argument("--dump-dir", type=str, default=None, help="Write an annotated tree dump here")
    parser.add_argument("--print-rules", action="store_true", help="Print the compiled-in rule set and exit")
    parser.add_argument("--self-check", action="store_true", help="Run environment self-check and exit")
    parser.add_argument("--log-level", type=str, default=None, help="Override the configured log level")
    return parser


def _check_appdata_writable() -> Tuple[bool, str]:
    try:
        os.makedirs(APPDATA_DIR, exist_ok=True)
        probe_path = os.path.join(APPDATA_DIR, ".selfcheck-write.tmp")
        with open(probe_path, "w", encoding="utf-8") as f:
            f.write("ok")
        os.remove(probe_path)
        return True, f"writable ({APPDATA_DIR})"
    except Exception as exc:
        return False, f"{exc.__class__.__name__}: {exc}"


def _check_rules_compile() -> Tuple[bool, str]:
    rules = SuppressionRules()
    matcher = PatternMatcher(rules.selectors)
    invalid = matcher.invalid_patterns
    if invalid:
        return False, f"{len(invalid)} invalid: {invalid[0].error}"
    return True, f"{len(matcher.patterns)} selectors compiled"


def _run_self_check() -> int:
    checks: List[Tuple[str, Callable[[], Tuple[bool, str]]]] = [
        ("settings directory write access", _check_appdata_writable),
        ("compiled-in selectors", _check_rules_compile),
    ]
    passed = 0
    for label, fn in checks:
        ok, detail = fn()
        if ok:
            passed += 1
        print(f"[{'OK' if ok else 'FAIL'}] {label}: {detail}")
    print(f"Summary: {passed}/{len(checks)} checks passed")
    return 0 if passed == len(checks) else 1


def _default_watch_seconds(settings: EngineSettings) -> float:
    return max(settings.rescan_delays_ms) / 1000.0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv if argv is not None else sys.argv[1:])
    if args.print_rules:
        print(SuppressionRules.default_json())
        return 0
    if args.self_check:
        return _run_self_check()
    if not args.snapshot:
        print("Nothing to do: pass --snapshot PATH (see --help)", file=sys.stderr)
        return 2

    ensure_runtime_files()
    settings = EngineSettings.load()
    logger = setup_logging(args.log_level or settings.log_level)
    load_warnings = consume_load_warnings()

    try:
        document = load_document(args.snapshot)
    except (OSError, SnapshotError) as exc:
        logger.error("Cannot load snapshot %s (%s)", args.snapshot, exc)
        return 1

    scheduler = ManualScheduler()
    engine = AdSuppressionEngine(document, logger, settings, scheduler=scheduler)
    for warning in load_warnings:
        logger.warning(warning)
    if load_warnings:
        engine.report_warning(load_warnings[0])

    controller = AdBlockerController(engine, settings, logger, settings_path=SETTINGS_FILE)
    try:
        controller.on_page_load()
        watch = args.watch if args.watch is not None else _default_watch_seconds(settings)
        scheduler.advance(max(watch, 0.0))
        print(controller.status_text())
        print(f"hidden={engine.get_hidden_count()}")
        if args.dump_dir:
            print(engine.dump_tree(out_dir=args.dump_dir))
        return 0
    finally:
        try:
            engine.disable()
        except Exception as exc:
            logger.warning("cleanup: engine.disable failed (%s)", exc.__class__.__name__)


__all__ = ["main", "build_parser", "VERSION"]
