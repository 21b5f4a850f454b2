import argparse
import asyncio
import json
import logging
import os
import pathlib
import sys
from typing import List, Optional

from tqdm.asyncio import tqdm

from .config import DEFAULT_CONFIG_FILENAME, Preferences, load_config
from .errors import LauncherError
from .launcher import Launcher

log = logging.getLogger('vortex_launcher')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='vortex-launcher', description="Install and launch game versions.")
    parser.add_argument('--config', type=pathlib.Path, default=pathlib.Path(DEFAULT_CONFIG_FILENAME),
                        help="launcher config file (default: %(default)s)")
    parser.add_argument('--settings', type=pathlib.Path, help="user settings file (JSON)")
    parser.add_argument('-v', '--verbose', action='store_true', help="debug logging")

    sub = parser.add_subparsers(dest='command', required=True)

    listing = sub.add_parser('list', help="list versions of the remote manifest")
    listing.add_argument('--all', action='store_true', help="include snapshots and old versions")

    sub.add_parser('installed', help="list installed versions")

    install = sub.add_parser('install', help="download a version")
    install.add_argument('version')
    install.add_argument('--force', action='store_true', help="download every file again")

    for name, text in (('launch', "start a version"), ('command', "print the launch command of a version")):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument('version')

    for cmd in (install, sub.choices['launch'], sub.choices['command']):
        cmd.add_argument('--name', help="player name")
        cmd.add_argument('--memory', type=int, help="maximum heap in MB")
        cmd.add_argument('--java', help="path of the Java runtime to use")
        cmd.add_argument('--threads', type=int, help="parallel downloads")
        cmd.add_argument('--sequential', action='store_true', help="download one file at a time")
        cmd.add_argument('--save-launch-string', action='store_true', help="write launch_string.txt")
    return parser


def load_preferences(args) -> Preferences:
    raw = {}
    if args.settings:
        try:
            with open(args.settings, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            log.warning(f"Could not parse {args.settings}: {e}. Using defaults.")
        except OSError as e:
            log.warning(f"Could not read {args.settings}: {e}. Using defaults.")
    prefs = Preferences.from_mapping(raw)

    if getattr(args, 'name', None):
        prefs.player_name = args.name
    if getattr(args, 'memory', None):
        prefs.memory_mb = args.memory
    if getattr(args, 'java', None):
        prefs.java_path = args.java
    if getattr(args, 'threads', None):
        prefs.download_threads = args.threads
    if getattr(args, 'sequential', False):
        prefs.parallel_download = False
    if getattr(args, 'save_launch_string', False):
        prefs.save_launch_string = True
    return prefs


async def install(launcher: Launcher, args, prefs: Preferences) -> int:
    pbar = tqdm(total=0, desc=f"Installing {args.version}", unit="file", leave=False)

    def on_progress(remaining: int, total: int):
        pbar.total = total
        pbar.n = total - remaining
        pbar.refresh()

    try:
        outcome = await launcher.resolve_and_download(args.version, prefs, force=args.force, progress=on_progress)
    finally:
        pbar.close()

    for failure in outcome.failures:
        log.error(str(failure))
    if not outcome.success:
        log.error(f"Download failed! {outcome.failed} of {outcome.total} files could not be fetched.")
        return 1
    log.info(f"Download complete! {outcome.fetched} fetched, {outcome.satisfied} already present.")
    return 0


async def launch(launcher: Launcher, args, prefs: Preferences) -> int:
    invocation = launcher.compose_launch(args.version, prefs)
    if args.command == 'command':
        print(invocation.render())
        return 0

    env = os.environ.copy()
    # A global _JAVA_OPTIONS would override the heap and collector flags.
    env.pop('_JAVA_OPTIONS', None)
    log.info(f"Attempting to launch {args.version}...")
    process = await asyncio.create_subprocess_exec(
        str(invocation.executable), *invocation.arguments,
        stdout=sys.stdout, stderr=sys.stderr,
        cwd=str(invocation.working_directory), env=env,
    )
    log.info(f"Game process started (PID: {process.pid}). Waiting for exit...")
    return_code = await process.wait()
    log.info(f"Game process exited with code {return_code}.")
    return return_code


async def run(args) -> int:
    config = load_config(args.config)
    launcher = Launcher(config)

    if args.command == 'list':
        for version_id, is_release in launcher.list_remote_versions(releases_only=not args.all):
            print(version_id if is_release else f"{version_id} (snapshot)")
        return 0
    if args.command == 'installed':
        versions = launcher.installed_versions()
        if not versions:
            log.info("Versions not found")
        for version_id in versions:
            print(version_id)
        return 0

    prefs = load_preferences(args)
    if args.command == 'install':
        return await install(launcher, args, prefs)
    return await launch(launcher, args, prefs)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')
    try:
        return asyncio.run(run(args))
    except LauncherError as e:
        log.error(str(e))
        return 1
    except KeyboardInterrupt:
        log.info("Cancelled by user.")
        return 130


if __name__ == '__main__':
    sys.exit(main())
