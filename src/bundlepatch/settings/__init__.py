from .models import (
    ContextLowMessagePatchSettings,
    ContextLowPatchSettings,
    EscInterruptPatchSettings,
    LEVEL_MAP,
    LoggingSettings,
    LogLevel,
    PatchesSettings,
    Settings,
    StatuslineRefreshPatchSettings,
    VerbosePatchSettings,
)
from .loader import load_settings

__all__ = [
    "ContextLowMessagePatchSettings",
    "ContextLowPatchSettings",
    "EscInterruptPatchSettings",
    "LEVEL_MAP",
    "LoggingSettings",
    "LogLevel",
    "PatchesSettings",
    "Settings",
    "StatuslineRefreshPatchSettings",
    "VerbosePatchSettings",
    "load_settings",
]
