[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gocrack"
version = "0.1.0"
description = "Building blocks of a distributed password cracking service: file management, e-mail notifications, RPC message types and the worker's RPC client"
requires-python = ">=3.10"
keywords = ["password", "cracking", "rpc", "notifications", "opencl", "file-manager"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Security",
]
dependencies = [
    "requests",
    "jinja2",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["gocrack"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
