"""Script provider protocol."""

from typing import Protocol, runtime_checkable

from ..entities.script import Script


@runtime_checkable
class ScriptProvider(Protocol):
    """Protocol for script stores.

    The teleprompter reads a script once when a session starts and never
    writes back through this interface.
    """

    def get_script(self, script_id: str) -> Script:
        """Retrieve a script by ID.

        Raises:
            ValueError: If the script is not found.
        """
        ...

    def list_scripts(self) -> list[Script]:
        """List all available scripts, most recently updated first."""
        ...
