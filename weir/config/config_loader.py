"""
Configuration loader for YAML and JSON files.

Loads job definitions (``JobSpec``) and service settings
(``ServiceSettings``) from declarative files.
"""

import json
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from weir.core.exceptions import ConfigurationError
from weir.core.specifications import JobSpec, ServiceSettings

ModelT = TypeVar("ModelT", bound=BaseModel)


class ConfigLoader:
    """
    Loads job and service configurations from YAML or JSON files.

    The format is chosen from the file suffix (``.json`` is JSON, anything
    else YAML). Relative source and sink paths resolve against the
    directory holding the config file.
    """

    @staticmethod
    def load_job(file_path: str | Path) -> JobSpec:
        """
        Load a job definition.

        Args:
            file_path: Path to a YAML or JSON file

        Returns:
            JobSpec

        Raises:
            FileNotFoundError: If file doesn't exist
            ConfigurationError: If the file is not a valid job definition
        """
        path = Path(file_path)
        config = ConfigLoader._read(path)
        ConfigLoader._resolve_paths(config, path.parent)
        return ConfigLoader._validate(JobSpec, config, path)

    @staticmethod
    def load_service(file_path: str | Path) -> ServiceSettings:
        """
        Load HTTP service settings.

        A relative ``data_root`` resolves against the config file directory.
        """
        path = Path(file_path)
        config = ConfigLoader._read(path)
        if config.get("data_root") and not Path(config["data_root"]).is_absolute():
            config["data_root"] = str(path.parent / config["data_root"])
        return ConfigLoader._validate(ServiceSettings, config, path)

    @staticmethod
    def from_yaml(file_path: str | Path) -> dict[str, Any]:
        """
        Read a YAML file into a dictionary.

        Raises:
            FileNotFoundError: If file doesn't exist
            ConfigurationError: If the YAML is malformed
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            try:
                config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
        return ConfigLoader._as_mapping(config, path)

    @staticmethod
    def from_json(file_path: str | Path) -> dict[str, Any]:
        """
        Read a JSON file into a dictionary.

        Raises:
            FileNotFoundError: If file doesn't exist
            ConfigurationError: If the JSON is malformed
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            try:
                config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        return ConfigLoader._as_mapping(config, path)

    @staticmethod
    def to_yaml(model: BaseModel, file_path: str | Path) -> None:
        """
        Save a configuration model to a YAML file.

        Args:
            model: JobSpec or ServiceSettings
            file_path: Destination file path
        """
        config_dict = model.model_dump(mode="json", exclude_none=True)
        with open(Path(file_path), "w") as f:
            yaml.safe_dump(
                config_dict, f, default_flow_style=False, indent=2, sort_keys=False
            )

    @staticmethod
    def to_json(model: BaseModel, file_path: str | Path) -> None:
        """Save a configuration model to a JSON file."""
        config_dict = model.model_dump(mode="json", exclude_none=True)
        with open(Path(file_path), "w") as f:
            json.dump(config_dict, f, indent=2, default=str)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        if path.suffix.lower() == ".json":
            return ConfigLoader.from_json(path)
        return ConfigLoader.from_yaml(path)

    @staticmethod
    def _as_mapping(config: Any, path: Path) -> dict[str, Any]:
        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        return config

    @staticmethod
    def _resolve_paths(config: dict[str, Any], base: Path) -> None:
        for section in ("sources", "sinks"):
            for entry in config.get(section) or []:
                if isinstance(entry, dict) and "path" in entry:
                    candidate = Path(entry["path"])
                    if not candidate.is_absolute():
                        entry["path"] = str(base / candidate)

    @staticmethod
    def _validate(model: type[ModelT], config: dict[str, Any], path: Path) -> ModelT:
        try:
            return model.model_validate(config)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {path}:\n{e}") from e
