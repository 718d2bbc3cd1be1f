from __future__ import annotations

from importlib import import_module
from typing import Dict, Tuple

_MODULE_EXPORTS = {
    "app": "page_adblocker.app",
}

_ATTR_EXPORTS: Dict[str, Tuple[str, str]] = {
    "main": ("page_adblocker.app", "main"),
    "VERSION": ("page_adblocker.config", "VERSION"),
    "APP_NAME": ("page_adblocker.config", "APP_NAME"),
    "APPDATA_DIRNAME": ("page_adblocker.config", "APPDATA_DIRNAME"),
    "APPDATA_DIR": ("page_adblocker.config", "APPDATA_DIR"),
    "SETTINGS_FILE": ("page_adblocker.config", "SETTINGS_FILE"),
    "LOG_FILE": ("page_adblocker.config", "LOG_FILE"),
    "EngineSettings": ("page_adblocker.config", "EngineSettings"),
    "SuppressionRules": ("page_adblocker.config", "SuppressionRules"),
    "get_app_data_dir": ("page_adblocker.config", "get_app_data_dir"),
    "ensure_runtime_files": ("page_adblocker.config", "ensure_runtime_files"),
    "consume_load_warnings": ("page_adblocker.config", "consume_load_warnings"),
    "AdSuppressionEngine": ("page_adblocker.event_engine", "AdSuppressionEngine"),
    "EngineState": ("page_adblocker.event_engine", "EngineState"),
    "AdBlockerController": ("page_adblocker.controller", "AdBlockerController"),
    "Document": ("page_adblocker.dom", "Document"),
    "VisualElement": ("page_adblocker.dom", "VisualElement"),
    "Rect": ("page_adblocker.dom", "Rect"),
    "Viewport": ("page_adblocker.dom", "Viewport"),
    "PatternMatcher": ("page_adblocker.patterns", "PatternMatcher"),
    "GeometryClassifier": ("page_adblocker.geometry", "GeometryClassifier"),
    "TextSignalClassifier": ("page_adblocker.text_signals", "TextSignalClassifier"),
    "SuppressionApplier": ("page_adblocker.suppression", "SuppressionApplier"),
    "LayoutEngine": ("page_adblocker.layout_engine", "LayoutEngine"),
    "ManualScheduler": ("page_adblocker.scheduling", "ManualScheduler"),
    "load_document": ("page_adblocker.snapshot", "load_document"),
    "setup_logging": ("page_adblocker.logging_setup", "setup_logging"),
}

__all__ = [
    "app",
    "main",
    "VERSION",
    "APP_NAME",
    "APPDATA_DIRNAME",
    "APPDATA_DIR",
    "SETTINGS_FILE",
    "LOG_FILE",
    "EngineSettings",
    "SuppressionRules",
    "get_app_data_dir",
    "ensure_runtime_files",
    "consume_load_warnings",
    "AdSuppressionEngine",
    "EngineState",
    "AdBlockerController",
    "Document",
    "VisualElement",
    "Rect",
    "Viewport",
    "PatternMatcher",
    "GeometryClassifier",
    "TextSignalClassifier",
    "SuppressionApplier",
    "LayoutEngine",
    "ManualScheduler",
    "load_document",
    "setup_logging",
]


def __getattr__(name: str):
    module_name = _MODULE_EXPORTS.get(name)
    if module_name is not None:
        module = import_module(module_name)
        globals()[name] = module
        return module

    target = _ATTR_EXPORTS.get(name)
    if target is not None:
        source_module_name, source_attr_name = target
        source_module = import_module(source_module_name)
        value = getattr(source_module, source_attr_name)
        globals()[name] = value
        return value

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(__all__))
