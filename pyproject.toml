[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "connpool"
version = "0.1.0"
description = "Generic thread-safe connection pools: an exclusive checkout pool and a multiplexing shared-connection pool"
requires-python = ">=3.10"
dependencies = []
keywords = ["connection", "pool", "pooling", "multiplexing", "resources", "threading"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["connpool"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
