"""Environment-backed settings for the AutoStock API."""

import logging
import os
from pathlib import Path
from typing import Any, Callable

_TRUTHY = frozenset({"true", "1", "yes"})


class HelperConfig:
    """Reads every setting of the service from environment variables.

    Keys are case-insensitive and an empty variable counts as unset. Every
    getter takes a ``default``; leaving it at None makes the setting
    mandatory, so a missing variable raises ValueError naming it.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _resolve(self, key: str, default: Any, parse: Callable[[str, str], Any]) -> Any:
        name = key.upper()
        raw = (os.getenv(name) or "").strip()
        if raw:
            return parse(name, raw)
        if default is None:
            raise ValueError(f"Environment variable '{name}' is not set.")
        return default

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Whitespace-stripped string value."""
        return self._resolve(key, default, lambda name, raw: raw)

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Numeric value; a dot makes it a float, otherwise an int.

        Raises:
            ValueError: If the setting is missing or not a number.
        """

        def parse(name: str, raw: str) -> float | int:
            try:
                return float(raw) if "." in raw else int(raw)
            except ValueError:
                raise ValueError(f"Environment variable '{name}' is not a valid number: '{raw}'.")

        return self._resolve(key, default, parse)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """"true", "1" and "yes" (any case) are true, every other value is false."""
        return self._resolve(key, default, lambda name, raw: raw.lower() in _TRUTHY)

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """List written as ``[a,b,c]``. Blank elements are dropped, the rest cast to element_type.

        Raises:
            ValueError: If the setting is missing, lacks the brackets or an
                element cannot be cast.
        """

        def parse(name: str, raw: str) -> list:
            if not (raw.startswith("[") and raw.endswith("]")):
                raise ValueError(
                    f"Environment variable '{name}' must be in the format "
                    f"'[elem1{separator}elem2{separator}...]'. Got: '{raw}'"
                )
            try:
                return [element_type(part.strip()) for part in raw[1:-1].split(separator) if part.strip()]
            except ValueError as e:
                raise ValueError(f"Environment variable '{name}' has an element that is not {element_type.__name__}: {e}")

        return self._resolve(key, default, parse)

    ################ PATHS ##################
    def get_root_dir(self) -> Path:
        """ROOT_DIR, or the working directory when unset. Logs, uploads and key files live below it."""
        return Path(self.get_string_val("ROOT_DIR", default=os.getcwd()))

    def resolve_path(self, path: str) -> Path:
        """Absolute paths are returned as given, relative ones are taken from ROOT_DIR."""
        return self.get_root_dir() / path

    def get_logger(self) -> logging.Logger:
        return self._logger
