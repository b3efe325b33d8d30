[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "krewkit"
version = "0.1.0"
description = "Building blocks for a kubectl plugin manager: index handling, manifest validation, archive download and extraction"
requires-python = ">=3.10"
keywords = ["kubectl", "kubernetes", "plugins", "plugin-manager", "manifest", "index"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml>=6.0",
    "requests>=2.28",
    "semver>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
krewkit-validate-manifest = "krewkit.manifest_check:main"
krewkit-plugin-overview = "krewkit.overview:main"

[tool.hatch.build.targets.wheel]
packages = ["krewkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
