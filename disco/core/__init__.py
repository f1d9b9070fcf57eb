"""Core orchestration for disco."""

from disco.core.controller import AppState, DisconnectController, build_controller

__all__ = ["AppState", "DisconnectController", "build_controller"]
