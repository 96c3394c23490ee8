"""Finds the Lambdas of a project on the filesystem."""

from pathlib import Path

from api_deploy_agent.lambdas.function import Lambda
from api_deploy_agent.lambdas.package import CONFIG_BASENAME
from api_deploy_agent.spec.merge import load_fragment


def load_lambdas(lambdas_dir: Path) -> list[Lambda]:
    """Load every ``lambdas/<identifier>/`` directory that has a config file."""
    if not lambdas_dir.is_dir():
        return []

    lambdas = []
    for directory in sorted(d for d in lambdas_dir.iterdir() if d.is_dir()):
        config = load_fragment(directory, CONFIG_BASENAME)
        if config is None:
            continue
        identifier = config.get("identifier", directory.name)
        lambdas.append(Lambda(identifier, config, directory))
    return lambdas


def select_lambdas(lambdas: list[Lambda], identifiers: set[str]) -> list[Lambda]:
    return [lam for lam in lambdas if lam.identifier in identifiers]
