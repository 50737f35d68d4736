[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "calcperiph"
version = "0.1.0"
description = "Memory-mapped peripheral models for an emulator of scientific calculators"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "emulator",
    "calculator",
    "peripheral",
    "mmio",
    "bcd",
    "keyboard-matrix",
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
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["calcperiph"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
