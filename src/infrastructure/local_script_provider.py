"""Local file system implementation of ScriptProvider."""

import json
import logging
import os
from typing import Dict, Optional

from pydantic import ValidationError

from ..domain.entities.script import Script
from ..domain.interfaces.script_provider import ScriptProvider

logger = logging.getLogger(__name__)


class LocalScriptProvider(ScriptProvider):
    """Local implementation of the ScriptProvider protocol.

    Keeps scripts in a dictionary, optionally pre-loaded from a directory
    of ``*.json`` files (one script per file). Useful for the demo client
    and for tests.
    """

    def __init__(self, base_path: Optional[str] = None):
        """Initialize the local script provider.

        Args:
            base_path: Directory to load ``*.json`` scripts from. When None,
                the provider starts empty.
        """
        self._scripts: Dict[str, Script] = {}
        self._base_path = base_path
        if base_path:
            self.load_directory(base_path)

    def load_directory(self, base_path: str) -> int:
        """Load every ``*.json`` script found in a directory.

        Files that cannot be parsed are skipped with a warning.

        Returns:
            int: Number of scripts loaded.
        """
        loaded = 0
        for name in sorted(os.listdir(base_path)):
            if not name.endswith(".json"):
                continue
            file_path = os.path.join(base_path, name)
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    script = Script.model_validate(json.load(f))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping script file {file_path}: {e}")
                continue
            self._scripts[script.id] = script
            loaded += 1
        logger.info(f"Loaded {loaded} script(s) from {base_path}")
        return loaded

    def get_script(self, script_id: str) -> Script:
        """Retrieve a script by ID from the in-memory dictionary.

        Args:
            script_id: The unique identifier of the script.

        Returns:
            Script: The script entity.

        Raises:
            ValueError: If the script is not found.
        """
        if script_id not in self._scripts:
            raise ValueError(f"Script with id {script_id} not found")

        return self._scripts[script_id]

    def list_scripts(self) -> list[Script]:
        """List all scripts, most recently updated first."""
        return sorted(self._scripts.values(), key=lambda s: s.updated_at, reverse=True)

    def add_script(self, script: Script) -> None:
        """Add or replace a script.

        Args:
            script: The script to store.
        """
        self._scripts[script.id] = script
