[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spectreidx"
version = "0.1.0"
description = "Row models, SQL statements, checkpoint tracking and batched writes for indexing a block DAG into PostgreSQL"
requires-python = ">=3.10"
dependencies = []
keywords = ["indexer", "blockdag", "database", "postgresql", "checkpoint", "sql"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Database",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["spectreidx"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
