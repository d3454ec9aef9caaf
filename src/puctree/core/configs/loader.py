"""Configuration loading utilities."""

from pathlib import Path
from typing import Any

from loguru import logger
from omegaconf import DictConfig, OmegaConf

from puctree.core.configs.schema import AppConfig, config_from_dict, config_to_dict


def load_config(config_path: str | Path, overrides: list[str] | None = None) -> DictConfig:
    """Read a YAML config and apply dotlist overrides on top of it.

    Args:
        config_path: YAML file whose top level is a mapping.
        overrides: Dotted assignments such as ``mcts.num_workers=4``.

    Raises:
        FileNotFoundError: If `config_path` is not a file.
        ValueError: If the file holds a list or a scalar instead of a mapping.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    config = OmegaConf.load(config_path)
    if not isinstance(config, DictConfig):
        raise ValueError(f"Config file {config_path} must contain a mapping at the top level")
    logger.debug(f"Loaded config from {config_path}")

    if overrides:
        config = OmegaConf.merge(config, OmegaConf.from_dotlist(overrides))
    return config


def load_app_config(
    config_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> AppConfig:
    """Build a typed AppConfig from defaults, an optional YAML file and overrides.

    Keys missing from the file keep their defaults. Unknown keys are
    rejected by the dataclass constructors.

    Args:
        config_path: Optional path to a YAML configuration file.
        overrides: Optional list of CLI-style overrides.

    Returns:
        The validated configuration.
    """
    config = OmegaConf.create(config_to_dict(AppConfig()))
    if config_path is not None:
        config = OmegaConf.merge(config, load_config(config_path))
    if overrides:
        config = OmegaConf.merge(config, OmegaConf.from_dotlist(overrides))

    data = OmegaConf.to_container(config, resolve=True)
    return config_from_dict(data)


def save_config(config: AppConfig | DictConfig | dict[str, Any], path: str | Path) -> None:
    """Save a configuration to a YAML file.

    Args:
        config: Configuration to save.
        path: Path to save the configuration to.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(config, AppConfig):
        config = config_to_dict(config)
    if isinstance(config, dict):
        config = OmegaConf.create(config)

    OmegaConf.save(config, path)
