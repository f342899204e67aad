from typing import Any, Dict
from pathlib import Path
import json
import os
import re

import yaml
import json5  # type: ignore

from .models import Settings, VAR_PATTERN


def _collect_variables(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Collect variables from the config. Supports:
      - mapping: variables: { KEY: default }
      - list of one-key mappings: variables: [ {KEY: default}, ... ]
    """
    out: Dict[str, Any] = {}
    vars_spec = doc.get("variables")
    if vars_spec is None:
        return out
    if isinstance(vars_spec, dict):
        for k, v in vars_spec.items():
            if isinstance(k, str):
                out[k] = v
    elif isinstance(vars_spec, list):
        for item in vars_spec:
            if isinstance(item, dict):
                for k, v in item.items():
                    if isinstance(k, str):
                        out[k] = v
    return out


def _lookup_var_value(name: str, vars_map: Dict[str, Any]) -> tuple[bool, Any]:
    """
    Resolve a variable or environment-backed placeholder name.

    Supports:
      - NAME      -> from vars_map
      - env:NAME  -> from environment (raw string)

    Returns (found, value); callers should leave the placeholder unchanged when
    found is False.
    """
    if name.startswith("env:"):
        env_name = name[4:]
        if not env_name:
            return False, None
        val = os.getenv(env_name)
        if val is None:
            return False, None
        return True, val

    if name in vars_map:
        return True, vars_map[name]

    return False, None


def _interpolate_string(s: str, vars_map: Dict[str, Any]) -> str:
    """Interpolate ${...} placeholders inside arbitrary strings.

    '$${NAME}' renders as a literal '${NAME}' with no interpolation.
    """

    def repl(m: re.Match) -> str:
        name = m.group(1)
        found, val = _lookup_var_value(name, vars_map)
        if not found:
            return m.group(0)
        if val is None:
            return ""
        if isinstance(val, (dict, list)):
            return json.dumps(val, ensure_ascii=False)
        return str(val)

    interpolated = VAR_PATTERN.sub(repl, s)
    return interpolated.replace("$${", "${")


def _apply_variables(obj: Any, vars_map: Dict[str, Any]) -> Any:
    if isinstance(obj, str):
        m = VAR_PATTERN.fullmatch(obj)
        if m:
            found, val = _lookup_var_value(m.group(1), vars_map)
            if found:
                return val
            return obj
        return _interpolate_string(obj, vars_map)
    if isinstance(obj, dict):
        return {k: _apply_variables(v, vars_map) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_apply_variables(v, vars_map) for v in obj]
    return obj


def _load_raw_file(path: Path) -> Any:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    data: Any = None
    if ext in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif ext in {".json5", ".jsonc", ".json"}:
        data = json5.loads(text)
    else:
        raise ValueError(f"Unsupported config file extension: {ext}")
    if data is None:
        return {}
    return data


def load_settings(path: str | Path) -> Settings:
    data_any = _load_raw_file(Path(path))
    if not isinstance(data_any, dict):
        raise ValueError("Root configuration must be a mapping/object")

    data = dict(data_any)
    vars_map = _collect_variables(data)
    data.pop("variables", None)

    return Settings.model_validate(_apply_variables(data, vars_map))
