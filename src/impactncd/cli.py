"""Command-line entry point: ``impactncd setup|status|start|stop|github-key``."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import posixpath

from impactncd.config import Settings, get_settings
from impactncd.container.cli import DockerCli
from impactncd.container.endpoint import resolve_endpoint
from impactncd.container.engine import DockerEngine
from impactncd.container.volumes import VolumeSynchronizer
from impactncd.github.key_client import GitHubKeyClient
from impactncd.gitops.notifier import GitChangeNotifier
from impactncd.gitops.prompts import ConsolePrompter, NonInteractivePrompter
from impactncd.lifecycle.image_builder import ImageBuilder
from impactncd.lifecycle.orchestrator import ContainerLifecycleOrchestrator
from impactncd.paths.sim_design import LocalFiles
from impactncd.remote.bootstrap import ParamikoBootstrap, SshpassBootstrap
from impactncd.remote.gateway import SshGateway
from impactncd.remote.keys import ensure_key_pair, ensure_known_host, read_key_file, remove_from_agent
from impactncd.remote.provisioning import KeyProvisioner, key_marker
from impactncd.remote.ssh_config import HostEntry, ensure_ssh_config_entry
from impactncd.shared.exceptions import ImpactError, PreconditionError
from impactncd.shared.models import SessionFlags, SessionState
from impactncd.shared.session import build_session_state, parse_location

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="impactncd", description="Run IMPACTncd RStudio containers locally or remotely."
    )
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    session = argparse.ArgumentParser(add_help=False)
    session.add_argument("--user", required=True, help="user name (normalized to lowercase)")
    session.add_argument("--location", default="LOCAL", help="LOCAL or REMOTE@<ip>")
    session.add_argument("--repo", help="repository name (required for remote sessions)")
    session.add_argument("--repo-path", help="local repository path (local sessions)")
    session.add_argument("--port", type=int, help="host port for RStudio")
    session.add_argument("--direct-ssh", action="store_true", help="use DOCKER_HOST instead of a docker context")
    session.add_argument("--non-interactive", action="store_true", help="never prompt")

    setup = sub.add_parser("setup", parents=[session], help="prepare ssh keys, config and docker context")
    setup.add_argument("--ssh-password", help="workstation password for the first key installation")

    sub.add_parser("status", parents=[session], help="show the user's containers")

    start = sub.add_parser("start", parents=[session], help="build if needed and start the container")
    start.add_argument("--password", help="RStudio password")
    start.add_argument("--volumes", action="store_true", help="use named volumes for output and synthpop")
    start.add_argument("--rebuild", action="store_true", help="rebuild the image even if it exists")
    start.add_argument("--high-compute", action="store_true", help="raise cpu/memory limits (remote only)")
    start.add_argument("--wait", action="store_true", help="wait until RStudio answers")

    sub.add_parser("stop", parents=[session], help="stop the container and sync data back")

    gh = sub.add_parser("github-key", help="manage ssh keys on the GitHub account")
    gh_sub = gh.add_subparsers(dest="action", required=True)
    add = gh_sub.add_parser("add")
    add.add_argument("--title", required=True)
    add.add_argument("--key-file", required=True, help="public key file")
    remove = gh_sub.add_parser("remove")
    remove.add_argument("key_id", type=int)
    return parser


def session_from_args(args: argparse.Namespace, settings: Settings) -> SessionState:
    location = parse_location(args.location, remote_user=settings.remote_user)
    flags = SessionFlags(
        debug=args.debug or settings.debug,
        direct_ssh=args.direct_ssh,
        use_volumes=getattr(args, "volumes", False),
        rebuild=getattr(args, "rebuild", False),
        high_compute=getattr(args, "high_compute", False),
    )
    return build_session_state(
        user_name=args.user,
        password=getattr(args, "password", None) or "",
        location=location,
        settings=settings,
        repo=args.repo,
        local_repo_path=args.repo_path or (None if args.repo else os.getcwd()),
        flags=flags,
        port=args.port,
    )


def build_gateway(state: SessionState, settings: Settings) -> SshGateway | None:
    remote = state.remote
    if remote is None:
        return None
    return SshGateway(
        remote,
        state.paths.ssh_private_key,
        connect_timeout=settings.ssh_connect_timeout,
        command_timeout=settings.command_timeout_seconds,
        metadata_dir=settings.metadata_dir,
    )


def build_orchestrator(
    state: SessionState,
    settings: Settings,
    *,
    non_interactive: bool = False,
    wait_for_web: bool = False,
) -> ContainerLifecycleOrchestrator:
    """Wire the collaborators for ``state``'s location."""
    endpoint = resolve_endpoint(state, settings)
    cli = DockerCli(endpoint, timeout=settings.command_timeout_seconds, build_timeout=settings.build_timeout_seconds)
    engine = DockerEngine(endpoint, timeout=settings.command_timeout_seconds)
    gateway = build_gateway(state, settings)
    prompter = NonInteractivePrompter() if non_interactive else ConsolePrompter()
    return ContainerLifecycleOrchestrator(
        settings,
        cli=cli,
        engine=engine,
        volumes=VolumeSynchronizer(engine, rsync_image=settings.rsync_image),
        builder=ImageBuilder(
            cli,
            engine,
            dockerfile=settings.dockerfile,
            prerequisite_dockerfile=settings.prerequisite_dockerfile,
            gateway=gateway,
            build_timeout=settings.build_timeout_seconds,
        ),
        files=gateway if gateway is not None else LocalFiles(),
        gateway=gateway,
        notifier=GitChangeNotifier(
            prompter,
            key_path=state.paths.ssh_private_key,
            remote_key_path=state.paths.container_key_source,
        ),
        wait_for_web=wait_for_web,
    )


async def run_setup(state: SessionState, settings: Settings, *, ssh_password: str | None) -> None:
    """Prepare everything a session needs before the first start."""
    if await ensure_key_pair(state.paths.ssh_private_key, comment=key_marker(state.user_name)):
        # drop any stale copy of the old key held by the agent
        await remove_from_agent(state.paths.ssh_private_key)
    await ensure_known_host(os.path.join(settings.ssh_dir_expanded, "known_hosts"))

    gateway = build_gateway(state, settings)
    remote = state.remote
    if gateway is None or remote is None:
        logger.info("local setup complete for %s", state.user_name)
        return

    provisioner = KeyProvisioner(
        gateway,
        [
            ParamikoBootstrap(timeout=settings.ssh_bootstrap_timeout),
            SshpassBootstrap(timeout=settings.ssh_bootstrap_timeout),
        ],
    )
    await provisioner.ensure_access(
        public_key_path=state.paths.ssh_public_key, user_name=state.user_name, password=ssh_password
    )

    # docker and git connect to the bare address, so the block must match it
    entry = HostEntry(
        host=remote.ip,
        hostname=remote.ip,
        user=remote.user,
        identity_file=state.paths.ssh_private_key,
        owner=state.user_name,
    )
    await ensure_ssh_config_entry(os.path.join(settings.ssh_dir_expanded, "config"), entry)

    private_key = await read_key_file(state.paths.ssh_private_key)
    if private_key is None:
        raise PreconditionError(f"cannot read private key {state.paths.ssh_private_key}")
    if not await gateway.write_file(state.paths.container_key_source, private_key + "\n"):
        raise PreconditionError(f"could not upload key to {remote.ip}:{state.paths.container_key_source}")

    known_hosts = state.paths.known_hosts_source
    result = await gateway.try_run(
        f"mkdir -p {posixpath.dirname(known_hosts)} && "
        f"(ssh-keygen -F github.com -f {known_hosts} >/dev/null || ssh-keyscan github.com >> {known_hosts}) && "
        f"chmod 600 {known_hosts}"
    )
    if result is None or not result.ok:
        logger.warning("could not ensure github.com in remote %s", known_hosts)

    endpoint = resolve_endpoint(state, settings)
    if endpoint.context and endpoint.ssh_url:
        await DockerCli(endpoint).ensure_context(endpoint.context, endpoint.ssh_url)
    logger.info("remote setup complete for %s on %s", state.user_name, remote.ip)


async def run_status(orchestrator: ContainerLifecycleOrchestrator, state: SessionState) -> None:
    report = await orchestrator.detect_status(state)
    print(f"{state.container_name}: {report.state.value}")
    for info in report.containers:
        ports = ",".join(str(p) for p in info.ports) or "-"
        print(f"  {info.name:<40} {info.status:<24} {ports}")
    if report.recovered is not None:
        rec = report.recovered
        print(f"  url: {orchestrator.session_url(state, rec.port)}  volumes: {rec.use_volumes}  ({rec.source.value})")


async def run_github_key(args: argparse.Namespace, settings: Settings) -> None:
    if not settings.github_token:
        raise PreconditionError("IMPACTNCD_GITHUB_TOKEN is not set")
    client = GitHubKeyClient(settings.github_token, base_url=settings.github_api_url)
    if args.action == "add":
        public_key = await read_key_file(args.key_file)
        if public_key is None:
            raise PreconditionError(f"cannot read {args.key_file}")
        key_id = await client.add_key(args.title, public_key)
        print(key_id)
    else:
        await client.remove_key(args.key_id)


async def dispatch(args: argparse.Namespace, settings: Settings) -> int:
    """Run one subcommand; returns the process exit code."""
    try:
        if args.command == "github-key":
            await run_github_key(args, settings)
            return 0

        state = session_from_args(args, settings)
        non_interactive = args.non_interactive or settings.non_interactive
        if args.command == "setup":
            await run_setup(state, settings, ssh_password=args.ssh_password)
            return 0

        orchestrator = build_orchestrator(
            state, settings, non_interactive=non_interactive, wait_for_web=getattr(args, "wait", False)
        )
        if args.command == "status":
            await run_status(orchestrator, state)
        elif args.command == "start":
            session = await orchestrator.start(state)
            print(f"RStudio: {session.url}  (user rstudio)")
        elif args.command == "stop":
            stopped = await orchestrator.stop(state)
            print(f"{state.container_name}: {'stopped' if stopped else 'not running'}")
        return 0
    except ImpactError as exc:
        logger.error("%s", exc)
        return 1


def configure_logging(debug: bool, log_file: str = "") -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``impactncd`` console script."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(args.debug or settings.debug, settings.log_file)

    if args.command == "start" and not args.password:
        if args.non_interactive or settings.non_interactive:
            args.password = os.environ.get("IMPACTNCD_PASSWORD", "")
        else:
            args.password = getpass.getpass("RStudio password: ")
    if args.command == "setup" and not args.ssh_password and not (args.non_interactive or settings.non_interactive):
        args.ssh_password = getpass.getpass("Workstation password (empty to skip): ") or None

    raise SystemExit(asyncio.run(dispatch(args, settings)))


if __name__ == "__main__":
    main()
