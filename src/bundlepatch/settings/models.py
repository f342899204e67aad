from typing import Dict, List, Optional
from enum import Enum
import logging
import re
from typing import Final

from pydantic import BaseModel, Field, field_validator

from bundlepatch.patch.session import PatchRequest


# Variable replacement pattern.
# Supports:
#   - ${NAME}
#   - ${env:NAME}
# Ignores '$${NAME}' so it can be used to escape a literal '${NAME}'.
VAR_PATTERN = re.compile(
    r"(?<!\$)\$\{([A-Za-z_][A-Za-z0-9_]*(?::[A-Za-z_][A-Za-z0-9_]*)?)\}"
)

DEFAULT_REFRESH_INTERVAL_MS: Final[int] = 30000
DEFAULT_BACKUP_SUFFIX: Final[str] = ".backup"


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"
    critical = "critical"
    disabled = "disabled"


LEVEL_MAP: Final[Dict[LogLevel, int]] = {
    LogLevel.debug: logging.DEBUG,
    LogLevel.info: logging.INFO,
    LogLevel.warning: logging.WARNING,
    LogLevel.error: logging.ERROR,
    LogLevel.critical: logging.CRITICAL,
    LogLevel.disabled: logging.CRITICAL + 1,
}


class LoggingSettings(BaseModel):
    # Level for the bundlepatch logger if not overridden.
    default_level: LogLevel = LogLevel.warning
    # Mapping of logger name -> level override (e.g., {"bundlepatch": "debug"})
    enabled_loggers: Dict[str, LogLevel] = Field(default_factory=dict)
    # Write log output to this file instead of stderr
    file: Optional[str] = None

    def level(self) -> int:
        return LEVEL_MAP.get(self.default_level, logging.INFO)

    def overrides(self) -> Dict[str, int]:
        return {name: LEVEL_MAP[lvl] for name, lvl in self.enabled_loggers.items()}


class VerbosePatchSettings(BaseModel):
    enabled: bool = True
    value: bool = True


class ContextLowPatchSettings(BaseModel):
    enabled: bool = True


class EscInterruptPatchSettings(BaseModel):
    enabled: bool = True


class StatuslineRefreshPatchSettings(BaseModel):
    enabled: bool = True
    interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS

    @field_validator("interval_ms")
    @classmethod
    def _validate_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("interval_ms must be positive")
        return v


class ContextLowMessagePatchSettings(BaseModel):
    """
    Rewrites the 'Context low' message. The template may contain a single
    '{percent}' placeholder that is replaced by the bundle's own percentage
    expression. Off by default: once applied, the 'Context low (' text the
    context_low patch anchors on is gone.
    """

    enabled: bool = False
    template: str = "Context left: {percent}%"


class PatchesSettings(BaseModel):
    verbose: VerbosePatchSettings = Field(default_factory=VerbosePatchSettings)
    context_low: ContextLowPatchSettings = Field(default_factory=ContextLowPatchSettings)
    esc_interrupt: EscInterruptPatchSettings = Field(
        default_factory=EscInterruptPatchSettings
    )
    statusline_refresh: StatuslineRefreshPatchSettings = Field(
        default_factory=StatuslineRefreshPatchSettings
    )
    context_low_message: ContextLowMessagePatchSettings = Field(
        default_factory=ContextLowMessagePatchSettings
    )


class Settings(BaseModel):
    patches: PatchesSettings = Field(default_factory=PatchesSettings)
    # Copy the original bundle to <target><backup_suffix> before saving
    backup: bool = True
    backup_suffix: str = DEFAULT_BACKUP_SUFFIX
    logging: Optional[LoggingSettings] = Field(default=None)

    @field_validator("backup_suffix")
    @classmethod
    def _validate_suffix(cls, v: str) -> str:
        if not v:
            raise ValueError("backup_suffix must not be empty")
        return v

    def requests(self) -> List[PatchRequest]:
        """Enabled patches, in the order they are applied."""
        p = self.patches
        out: List[PatchRequest] = []
        if p.verbose.enabled:
            out.append(PatchRequest("verbose", {"value": p.verbose.value}))
        if p.context_low.enabled:
            out.append(PatchRequest("context_low"))
        if p.esc_interrupt.enabled:
            out.append(PatchRequest("esc_interrupt"))
        if p.statusline_refresh.enabled:
            out.append(
                PatchRequest(
                    "statusline_refresh",
                    {"interval_ms": p.statusline_refresh.interval_ms},
                )
            )
        if p.context_low_message.enabled:
            out.append(
                PatchRequest(
                    "context_low_message",
                    {"template": p.context_low_message.template},
                )
            )
        return out
