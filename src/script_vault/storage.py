"""Local persistence of the vault state."""

import json
import os
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger
from pydantic import ValidationError

from script_vault.exceptions import StateStoreError
from script_vault.models import ScriptItem, VaultSettings, VaultState


class StateStore:
    """Reads and writes the vault state as a JSON document.

    The document uses the same camelCase layout as other Script Vault
    clients. A missing or unreadable document yields an empty vault. Missing
    or null settings are backfilled with their defaults on load, and a script
    that fails validation is skipped without discarding the others.
    """

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> VaultState:
        if not self.path.exists():
            logger.debug(f"No saved vault state at {self.path}")
            return VaultState()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read vault state {self.path}, starting empty: {e}")
            return VaultState()

        if not isinstance(raw, dict):
            logger.warning(f"Vault state {self.path} is not a JSON object, starting empty")
            return VaultState()

        scripts = self._load_scripts(raw.get("scripts"))
        selected_id = raw.get("selectedId")
        state = VaultState(
            scripts=scripts,
            selected_id=selected_id if isinstance(selected_id, str) else None,
            settings=self._load_settings(raw.get("settings")),
        )
        logger.debug(f"Loaded vault state: scripts={len(state.scripts)}")
        return state

    def _load_scripts(self, raw_scripts: Any) -> List[ScriptItem]:
        if not isinstance(raw_scripts, list):
            return []

        scripts: List[ScriptItem] = []
        for position, raw_script in enumerate(raw_scripts):
            if not isinstance(raw_script, dict):
                logger.warning(f"Skipping script {position} in {self.path}: not an object")
                continue
            try:
                scripts.append(ScriptItem.model_validate(_without_nulls(raw_script)))
            except ValidationError as e:
                logger.warning(
                    f"Skipping script {position} in {self.path}: {e.error_count()} invalid fields"
                )
        return scripts

    def _load_settings(self, raw_settings: Any) -> VaultSettings:
        # older documents have no settings, or settings: null
        if not isinstance(raw_settings, dict):
            return VaultSettings()

        values = _without_nulls(raw_settings)
        try:
            return VaultSettings.model_validate(values)
        except ValidationError as e:
            invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
            logger.warning(f"Resetting invalid settings in {self.path}: {sorted(map(str, invalid))}")

        try:
            return VaultSettings.model_validate(
                {key: value for key, value in values.items() if key not in invalid}
            )
        except ValidationError:
            return VaultSettings()

    def save(self, state: VaultState) -> None:
        """Write the state, replacing the previous document atomically.

        Raises:
            StateStoreError: If the document cannot be written
        """
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(state.to_json_dict(), indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save vault state to {self.path}: {e}")
            if tmp_path.exists():
                tmp_path.unlink()
            raise StateStoreError(f"Could not save vault state to {self.path}: {e}") from e
        logger.debug(f"Saved vault state: scripts={len(state.scripts)}")


def _without_nulls(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop null values so field defaults apply."""
    return {key: value for key, value in values.items() if value is not None}
