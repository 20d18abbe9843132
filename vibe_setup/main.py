from __future__ import annotations

import argparse
import logging
import platform
from typing import Callable, Dict, Optional

from .errors import ManifestError, PreflightError
from .lib.apt_repo import dpkg_arch, ubuntu_codename
from .lib.env import PATHS, current_user, detect_profile, system_name
from .logging_utils import configure_logging
from .manifest import Manifest, available_profiles, expand, load_manifest, load_profile
from .pipeline import RunContext, RunMode, RunReport, run_groups
from .plan import RunOptions, build_plan
from .preflight import build_preflight, run_preflight
from .summary import gather_facts, log_summary
from .toolkit import Toolkit

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PREFLIGHT = 1
EXIT_MANIFEST = 2
EXIT_INTERRUPTED = 130

EPILOG = """\
Safe to re-run: every step checks the machine first and only installs
what is missing. Individual failures are listed at the end and do not
stop the run; exit status is non-zero only when the run cannot start
(pre-flight failure or malformed manifest) or is interrupted.
"""


def default_variables(tk: Toolkit, *, system: str) -> Dict[str, str]:
    variables = {
        "home": tk.home,
        "user": current_user(),
        "shell": str(tk.env.get("SHELL", "")),
        "arch": platform.machine(),
        "codename": "",
    }
    if system == "Linux":
        variables["arch"] = dpkg_arch(tk.runner)
        variables["codename"] = ubuntu_codename()
    return variables


def resolve_manifest(*, profile: str, manifest_path: Optional[str], system: Optional[str] = None) -> Manifest:
    """Pick the manifest for this machine (the OS-detecting dispatcher)."""

    if manifest_path:
        return load_manifest(manifest_path)
    if profile == "auto":
        detected = detect_profile(system)
        if detected is None:
            raise PreflightError(
                f"Unsupported OS: {system or system_name()}. "
                "This installer supports macOS and Linux (Pop!_OS / Ubuntu)."
            )
        profile = detected
    return load_profile(profile)


def run(
    *,
    manifest: Manifest,
    options: RunOptions,
    toolkit: Optional[Toolkit] = None,
    system: Optional[Callable[[], str]] = None,
    privileged: Optional[Callable[[], bool]] = None,
) -> RunReport:
    """Pre-flight, then every selected step in order.

    Raises PreflightError before any step runs, and ManifestError before
    any step runs if an entry is malformed.
    """

    tk = toolkit or Toolkit()
    system = system or system_name

    run_preflight(
        build_preflight(manifest.preflight, system=system, privileged=privileged, which=tk.which)
    )

    if not tk.variables:
        tk.variables = default_variables(tk, system=system())
    if manifest.path_prepend:
        path = tk.extend_path(expand(manifest.path_prepend, tk.variables))
        logger.debug("PATH=%s", path)

    groups = build_plan(manifest, options, tk)

    ctx = RunContext(
        mode=RunMode.DRY_RUN if options.dry_run else RunMode.NORMAL,
        verify=options.verify,
    )
    try:
        run_groups(groups, ctx)
    except KeyboardInterrupt:
        logger.warning("Interrupted; rerun to finish the remaining steps")
        log_summary(ctx.report)
        raise

    facts = gather_facts(expand(manifest.report, tk.variables), tk.runner)
    log_summary(ctx.report, notes=manifest.notes, facts=facts)
    return ctx.report


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vibe-setup",
        description="Provision a developer workstation (Linux via apt, macOS via Homebrew).",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "--profile",
        default="auto",
        choices=["auto", *available_profiles()],
        help="Machine profile; auto picks from the running OS",
    )
    p.add_argument("--manifest", default=None, help="Use a custom YAML manifest instead of a profile")
    p.add_argument("--log", default=None, help="Run log path (default: ~/<profile log name>)")
    p.add_argument("--dry-run", action="store_true", help="Show what would be installed without installing")
    p.add_argument(
        "--minimal",
        action="store_true",
        help="Only AI tools + languages (skip system tuning, remote, CLI extras)",
    )
    p.add_argument("--skip-git", action="store_true", help="Skip git identity, config and SSH key")
    p.add_argument("--skip-remote", action="store_true", help="Skip remote access tools")
    p.add_argument(
        "--skip-gui-remote",
        action="store_true",
        help="Skip GUI remote tools (RustDesk, NoMachine) but keep Tailscale + SSH",
    )
    p.add_argument("--skip-ai", action="store_true", help="Skip AI CLI tools")
    p.add_argument("--verify", action="store_true", help="Re-check each step after applying it")
    p.add_argument("--git-name", default=None, help="Git user.name (skips the prompt)")
    p.add_argument("--git-email", default=None, help="Git user.email (skips the prompt)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.INFO

    try:
        manifest = resolve_manifest(profile=args.profile, manifest_path=args.manifest)
    except (PreflightError, ManifestError, FileNotFoundError) as e:
        configure_logging(log_path=args.log, level=level)
        logger.error("%s", e)
        return EXIT_PREFLIGHT if isinstance(e, PreflightError) else EXIT_MANIFEST

    log_path = configure_logging(log_path=args.log or PATHS.log_default(manifest.log_name), level=level)
    logger.info("Started: %s", manifest.title)
    logger.info("Log file: %s", log_path)

    options = RunOptions(
        dry_run=bool(args.dry_run),
        verify=bool(args.verify),
        minimal=bool(args.minimal),
        skip_git=bool(args.skip_git),
        skip_remote=bool(args.skip_remote),
        skip_gui_remote=bool(args.skip_gui_remote),
        skip_ai=bool(args.skip_ai),
    )
    if options.dry_run:
        logger.warning("DRY RUN MODE - nothing will be installed")
    if options.minimal:
        logger.info("MINIMAL MODE - skipping system tuning, remote tools, CLI extras")

    answers = {k: v for k, v in {"git_name": args.git_name, "git_email": args.git_email}.items() if v}
    tk = Toolkit(answers=answers)

    try:
        run(manifest=manifest, options=options, toolkit=tk)
    except PreflightError:
        return EXIT_PREFLIGHT
    except ManifestError as e:
        logger.error("%s", e)
        return EXIT_MANIFEST
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED

    logger.info("Completed. Log: %s", log_path)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
