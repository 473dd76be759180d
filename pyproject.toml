[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cilkrt"
version = "0.1.0"
description = "Work-stealing runtime building blocks: a hyperobject hash table with a lookup cache, and simulated fiber stacks"
requires-python = ">=3.10"
dependencies = []
keywords = ["work-stealing", "hash table", "linear probing", "cache", "fiber", "runtime"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cilkrt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
