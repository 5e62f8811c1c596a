"""Release tooling for Cargo projects: versions, requirements, manifests, registries, git, configuration and changelogs."""

__version__ = "0.1.0"