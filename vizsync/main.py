# -*- coding: utf-8 -*-
import argparse
import sys
from pathlib import Path
from typing import List, NoReturn, Optional


def _handle_qt_import_error(exc: ImportError) -> NoReturn:
    """Exit with a helpful message when the Qt bindings cannot be imported."""

    raise SystemExit(
        "Cannot start vizsync: importing PyQt5 failed.\n"
        "Check that PyQt5 is installed and that the system Qt libraries are available.\n"
        f"Original error: {exc}"
    ) from exc


try:
    from PyQt5 import QtCore, QtGui, QtWidgets
except ImportError as exc:  # pragma: no cover - dépendances environnementales
    _handle_qt_import_error(exc)

from loguru import logger

from . import logs
from .channel import ChannelEndpoint, LocalChannel
from .control.config import HOST_SOURCE, PANEL_SOURCE, Settings
from .control.control_window import ControlWindow
from .control.preset_manager import load_builtin_presets
from .control.storage import LocalStorage
from .host import HostSession, HostWindow, default_visualizers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vizsync", description="Visualizer host with a detached control panel.")
    parser.add_argument("--storage", type=Path, help="JSON file holding presets and shader values")
    parser.add_argument("--presets-dir", type=Path, help="directory with index.json and built-in presets")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--ready-interval", type=int, metavar="MS", help="handshake retry interval")
    parser.add_argument("--active", help="visualizer shown at start")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    if args.storage:
        settings.storage_path = args.storage.expanduser()
    if args.presets_dir:
        settings.presets_dir = args.presets_dir.expanduser()
    if args.log_level:
        settings.log_level = args.log_level.upper()
    if args.ready_interval:
        settings.ready_interval_ms = max(1, args.ready_interval)
    return settings


def _log_unhandled(exc_type, exc_value, exc_tb):
    logger.opt(exception=(exc_type, exc_value, exc_tb)).error("unhandled exception")


def main(argv: Optional[List[str]] = None) -> int:
    """Start host and panel in one process and return the exit code."""

    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    logs.setup(settings.log_level)
    sys.excepthook = _log_unhandled

    QtWidgets.QApplication.setAttribute(QtCore.Qt.AA_EnableHighDpiScaling, True)
    app = QtWidgets.QApplication(sys.argv[:1])

    channel = LocalChannel(app)
    session = HostSession(ChannelEndpoint(channel, HOST_SOURCE), default_visualizers(), active=args.active)
    host_win = HostWindow(session)

    storage = LocalStorage(settings.storage_path)
    presets_dir = settings.presets_dir
    control_win = ControlWindow(
        ChannelEndpoint(channel, PANEL_SOURCE),
        storage,
        builtin_loader=lambda: load_builtin_presets(presets_dir),
        ready_interval_ms=settings.ready_interval_ms,
    )

    # La fenêtre du panneau suit la taille annoncée
    def _follow_panel_size(snapshot: dict):
        size = snapshot.get("panelSize")
        if size:
            control_win.resize(max(control_win.width(), size[0]), size[1] + 48)

    session.stateChanged.connect(_follow_panel_size)

    geo = QtGui.QGuiApplication.primaryScreen().availableGeometry()
    half_w = max(200, geo.width() // 2)
    host_win.move(geo.left(), geo.top())
    control_win.move(geo.left() + half_w, geo.top())
    host_win.show()
    control_win.show()
    logger.info("storage: {}", storage.path)
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
