"""Application bootstrap helpers and the ``postier`` command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .editor.tree_model import DirectoryTree
from .errors import PostierError
from .services.http_executor import HttpExecutor
from .services.settings import Settings, SettingsStore
from .services.storage import FolderPicker, LocalFileStorage, StorageBackend
from .services.workspace_state import WorkspaceStateStore
from .ui.application.collection_ops import (
    CloseCollectionUseCase,
    ConfirmationProvider,
    CreateNodeUseCase,
    DeleteNodeUseCase,
    OpenCollectionUseCase,
    RefreshCollectionsUseCase,
    RenameNodeUseCase,
    RestoreWorkspaceUseCase,
    SelectNodeUseCase,
    report_failure,
)
from .ui.application.request_ops import (
    FileNamePrompt,
    SaveRequestAsUseCase,
    SaveRequestUseCase,
    SendRequestUseCase,
)
from .ui.domain.collection_loader import CollectionTreeLoader
from .ui.domain.request_controller import RequestDocumentController
from .ui.domain.tree_mutations import TreeMutationService
from .ui.domain.workspace_store import WorkspaceStore
from .ui.events import EventBus, EventCoordinator, NoticePosted
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Every collaborator of a running workspace, wired together."""

    settings: Settings
    state_store: WorkspaceStateStore
    bus: EventBus
    coordinator: EventCoordinator
    storage: StorageBackend
    executor: HttpExecutor
    store: WorkspaceStore
    loader: CollectionTreeLoader
    mutations: TreeMutationService
    controller: RequestDocumentController
    use_cases: Dict[str, Any] = field(default_factory=dict)

    async def aclose(self) -> None:
        self.controller.unmount()
        await self.executor.aclose()


def configure_logging(debug: bool = False, *, force: bool = False, console: bool = True) -> None:
    level = logging_utils.resolve_level(debug)
    log_path = logging_utils.setup_logging(level, console=console, force=force)
    _LOGGER.debug("Logging configured (level=%s, file=%s)", logging.getLevelName(level), log_path)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_services(
    settings: Settings,
    *,
    state_store: WorkspaceStateStore | None = None,
    storage: StorageBackend | None = None,
    executor: HttpExecutor | None = None,
    picker: FolderPicker | None = None,
    confirmation: ConfirmationProvider | None = None,
    prompt: FileNamePrompt | None = None,
) -> Services:
    """Wire stores, domain services and use cases around one event bus."""

    state_store = state_store or WorkspaceStateStore()
    storage = storage or LocalFileStorage()
    executor = executor or HttpExecutor(settings)
    bus = EventBus()
    coordinator = EventCoordinator(bus)
    store = WorkspaceStore(bus, state_store)
    loader = CollectionTreeLoader(storage, store)
    mutations = TreeMutationService(storage, store, loader, coordinator=coordinator)
    controller = RequestDocumentController(storage, bus, store=store)
    controller.mount(coordinator)

    save_as = SaveRequestAsUseCase(controller, store, loader, bus)
    use_cases: Dict[str, Any] = {
        "open_collection": OpenCollectionUseCase(loader, store, picker, bus),
        "close_collection": CloseCollectionUseCase(store, coordinator),
        "refresh": RefreshCollectionsUseCase(loader, store, bus),
        "select_node": SelectNodeUseCase(store, coordinator),
        "create_node": CreateNodeUseCase(mutations, bus),
        "rename_node": RenameNodeUseCase(mutations, bus),
        "delete_node": DeleteNodeUseCase(mutations, confirmation, bus),
        "restore": RestoreWorkspaceUseCase(state_store, loader, store, coordinator),
        "send": SendRequestUseCase(controller, executor, store, bus),
        "save_as": save_as,
        "save": SaveRequestUseCase(controller, prompt, save_as, bus),
    }
    return Services(
        settings=settings,
        state_store=state_store,
        bus=bus,
        coordinator=coordinator,
        storage=storage,
        executor=executor,
        store=store,
        loader=loader,
        mutations=mutations,
        controller=controller,
        use_cases=use_cases,
    )


class ConsoleNotices:
    """Prints every :class:`NoticePosted` to a text stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stderr
        self.count = 0

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(NoticePosted, self.on_notice)

    def on_notice(self, event: NoticePosted) -> None:
        self.count += 1
        self._stream.write(f"[{event.level}] {event.title}: {event.message}\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``postier`` console script."""

    args = _parse_cli_args(argv)
    debug = _env_flag("POSTIER_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("POSTIER_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)
    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    state_path = Path(args.state_path).expanduser() if args.state_path else None
    services = build_services(settings, state_store=WorkspaceStateStore(state_path))
    return _run_coroutine(_run_cli(services, args))


async def _run_cli(services: Services, args: argparse.Namespace, stream: TextIO | None = None) -> int:
    out = stream or sys.stdout
    notices = ConsoleNotices()
    notices.attach(services.bus)
    try:
        await services.use_cases["restore"].execute()
        if args.open:
            for path in args.open:
                await services.use_cases["open_collection"].execute(str(Path(path).expanduser().resolve()))
        if args.close:
            for collection_id in args.close:
                if not services.use_cases["close_collection"].execute(collection_id):
                    notices.on_notice(NoticePosted(title="Unknown collection", message=collection_id))
        if args.refresh:
            await services.use_cases["refresh"].execute()
        if args.send:
            target = str(Path(args.send).expanduser().resolve())
            await _send_file(services, target, autosave=not args.no_autosave, stream=out)
        if args.dump_state:
            json.dump(services.store.snapshot().to_dict(), out, indent=2)
            out.write("\n")
        elif not args.send:
            _print_workspace(services, out)
    finally:
        await services.aclose()
    return 1 if notices.count else 0


async def _send_file(services: Services, path: str, *, autosave: bool, stream: TextIO) -> None:
    services.store.select_owner_of(path)
    try:
        await services.controller.load(path)
    except PostierError as exc:
        report_failure(services.bus, "load request", exc)
        return
    response = await services.use_cases["send"].execute(autosave=autosave)
    if response is None:
        return
    stream.write(f"{response.status} ({response.size} bytes, {response.duration / 1000:.1f} ms)\n")
    if response.body:
        stream.write(response.body)
        if not response.body.endswith("\n"):
            stream.write("\n")


def _print_workspace(services: Services, stream: TextIO) -> None:
    store = services.store
    if not store.collections:
        stream.write("No collections open. Use --open PATH to add one.\n")
        return
    for collection in store.collections:
        marker = "*" if collection.id == store.selected_collection_id else " "
        stream.write(f"{marker} {collection.name} [{collection.id}] {collection.path}\n")
        _print_tree(collection.tree, stream, depth=1)


def _print_tree(tree: DirectoryTree, stream: TextIO, *, depth: int) -> None:
    for child in tree.children or ():
        suffix = "/" if child.is_dir else ""
        stream.write(f"{'  ' * depth}{child.entry.name}{suffix}\n")
        if child.is_dir:
            _print_tree(child, stream, depth=depth + 1)


def _run_coroutine(coro: Any) -> Any:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    return loop.create_task(coro)


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="postier",
        description="Inspect and drive a Postier workspace of .postier request collections.",
    )
    parser.add_argument("--dump-settings", action="store_true", help="Print the effective settings and exit.")
    parser.add_argument("--dump-state", action="store_true", help="Print the persisted workspace state.")
    parser.add_argument("--settings-path", metavar="PATH", help="Override ~/.postier/settings.json.")
    parser.add_argument("--state-path", metavar="PATH", help="Override ~/.postier/workspace.json.")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override a setting for this run (repeatable).",
    )
    parser.add_argument("--open", metavar="PATH", action="append", help="Open a folder as a collection.")
    parser.add_argument("--close", metavar="ID", action="append", help="Close the collection with this id.")
    parser.add_argument("--refresh", action="store_true", help="Rebuild every collection tree.")
    parser.add_argument("--send", metavar="FILE", help="Send the request stored in FILE.")
    parser.add_argument(
        "--no-autosave",
        action="store_true",
        help="Do not write the response back into the request file.",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, fields[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target is dict:
        try:
            payload = json.loads(raw_value or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dict overrides must be valid JSON objects")
        return payload
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    return args[0] if args else origin


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _env_flag(name: str, *, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    output = {
        "settings": asdict(settings),
        "meta": {
            "path": str(store.path),
            "cli_overrides": sorted(overrides),
            "environment_variables": sorted(name for name in os.environ if name.startswith("POSTIER_")),
        },
    }
    json.dump(output, destination, indent=2)
    destination.write("\n")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
