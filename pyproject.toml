[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wrench"
version = "0.1.0"
description = "Binary streams, disc-image patching, MD5 and camera maths for a PS2 level editor"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "modding",
    "level-editor",
    "iso",
    "binary-streams",
    "md5",
    "camera",
    "projection",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["wrench"]

[tool.hatch.build.targets.sdist]
include = [
    "wrench",
    "tests",
    "pyproject.toml",
    "README.md",
]

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
warn_redundant_casts = true
