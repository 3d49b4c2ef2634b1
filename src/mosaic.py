"""Mosaic - package manager for Polytoria projects

    Raises:
        SystemExit: always, with an ExitCodes value

    Returns:
        int: Exit code
"""
import asyncio
import logging
import sys
from pathlib import Path

from args import parse_args
from cli_config import ClientConfig
from common.logging_utils import add_file_handler, configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from errors import CircularDependencyError, ManifestError, MosaicError
from project.manifest import ProjectManifest
from registry.client import RegistryClient
from resolver.installer import Installer

logger = logging.getLogger(__name__)


def _load_manifest_if_present(config):
    """Return the manifest or None when the project has none."""
    try:
        return ProjectManifest.load(config.manifest_path)
    except ManifestError as exc:
        logger.debug("No usable manifest: %s", exc)
        return None


def cmd_init(config):
    """Create mosaic.toml named after the project directory."""
    path = config.manifest_path
    if path.exists():
        logger.warning("%s already exists, leaving it unchanged", path.name)
        return
    project_name = Path(config.project_dir).resolve().name or Constants.DEFAULT_PROJECT_NAME
    logger.info("Initializing project: %s...", project_name)
    ProjectManifest.default(path, project_name).save()
    logger.info("Created %s", path.name)


async def cmd_install(config, query):
    """Install one query, or every dependency from the manifest."""
    async with RegistryClient(config.registry_url, config.timeout) as registry:
        installer = Installer(config, registry)
        if query:
            resolved = await installer.install(query)
            manifest = _load_manifest_if_present(config)
            if manifest is not None:
                manifest.add_dependency(resolved.name, resolved.version)
                manifest.save()
                logger.info("Added %s to %s", resolved.name, Constants.MANIFEST_FILE)
            return

        manifest = ProjectManifest.load(config.manifest_path)
        if not manifest.dependencies:
            logger.info("No dependencies declared in %s", Constants.MANIFEST_FILE)
            return
        logger.info("Installing all dependencies for %s...", manifest.name)
        await installer.install_all(manifest.dependencies)


async def cmd_update(config):
    """Move every manifest dependency to its latest version."""
    manifest = ProjectManifest.load(config.manifest_path)
    if not manifest.dependencies:
        logger.info("No dependencies declared in %s", Constants.MANIFEST_FILE)
        return
    async with RegistryClient(config.registry_url, config.timeout) as registry:
        installer = Installer(config, registry)
        results = await installer.update_all(list(manifest.dependencies))
    for name, resolved in results.items():
        manifest.add_dependency(name, resolved.version)
    manifest.save()


def cmd_remove(config, name):
    """Remove the module, its lock entry and its manifest entry."""
    installer = Installer(config)
    removed = installer.remove(name)
    manifest = _load_manifest_if_present(config)
    if manifest is not None and manifest.remove_dependency(name):
        manifest.save()
        removed = True
    if removed:
        logger.info("Removed %s", name)


def cmd_list(config):
    """Print installed packages from the lockfile."""
    installer = Installer(config)
    entries = installer.installed()
    if not entries:
        print("No packages installed.")
        return
    manifest = _load_manifest_if_present(config)
    direct = set(manifest.dependencies) if manifest is not None else set()
    for name, locked in entries:
        marker = "" if name in direct else " (transitive)"
        print(f"{name}@{locked.version}{marker}")


async def cmd_search(config, query):
    async with RegistryClient(config.registry_url, config.timeout) as registry:
        packages = await registry.search(query)
    if not packages:
        print("No packages found.")
        return
    for pkg in packages:
        line = f"{pkg.name}@{pkg.version}  {pkg.author or 'unknown'}  {pkg.description or 'No description'}"
        if pkg.deprecated:
            line += "  [deprecated]"
        print(line)


async def cmd_info(config, name):
    async with RegistryClient(config.registry_url, config.timeout) as registry:
        pkg = await registry.get_package(name)
        versions = await registry.list_versions(name)
    print(f"{pkg.name}@{pkg.version}")
    if pkg.description:
        print(f"  {pkg.description}")
    print(f"  author: {pkg.author or 'unknown'}")
    if pkg.deprecated:
        print(f"  deprecated: {pkg.deprecation_reason or 'yes'}")
    print(f"  versions: {', '.join(v.version for v in versions) or 'none'}")


def run_command(args, config):
    """Dispatch the parsed subcommand."""
    command = args.COMMAND
    if command == "init":
        cmd_init(config)
    elif command == "install":
        asyncio.run(cmd_install(config, args.PACKAGE))
    elif command == "update":
        asyncio.run(cmd_update(config))
    elif command == "remove":
        cmd_remove(config, args.PACKAGE)
    elif command == "list":
        cmd_list(config)
    elif command == "search":
        asyncio.run(cmd_search(config, args.QUERY))
    elif command == "info":
        asyncio.run(cmd_info(config, args.PACKAGE))
    else:
        raise ValueError(f"Unknown command: {command}")


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(getattr(args, "LOG_LEVEL", None))
    try:
        config = ClientConfig.from_args(args)
    except MosaicError as exc:
        logger.error("%s", exc)
        sys.exit(exc.exit_code.value)

    configure_logging(config.log_level)
    if config.log_file:
        add_file_handler(config.log_file)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(
                event="function_entry",
                component="cli",
                action=args.COMMAND,
                target=config.registry_url,
            ),
        )

    try:
        run_command(args, config)
    except CircularDependencyError as exc:
        logger.error("Circular dependency: %s", exc.path)
        sys.exit(exc.exit_code.value)
    except MosaicError as exc:
        logger.error("%s", exc)
        sys.exit(exc.exit_code.value)
    except OSError as exc:
        logger.error("IO error: %s, aborting", exc)
        sys.exit(ExitCodes.FILE_ERROR.value)

    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
