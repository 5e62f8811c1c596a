[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "relplz"
version = "0.1.0"
description = "Release tooling for Cargo projects: next-version calculation, manifest editing, git helpers, release configuration and changelogs."
requires-python = ">=3.11"
keywords = [
    "release",
    "semver",
    "changelog",
    "conventional-commits",
    "cargo",
    "versioning",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: Software Development :: Version Control :: Git",
]
dependencies = [
    "tomlkit",
    "semver",
    "jinja2",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["relplz"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
