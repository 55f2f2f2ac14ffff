[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mutexnet"
version = "0.1.0"
description = "A networked named-mutex server with a line-oriented client and a JSON status endpoint"
requires-python = ">=3.10"
dependencies = []
keywords = ["mutex", "lock", "server", "client", "tcp", "locking"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mutexnet-server = "mutexnet.server:main"
mutexnet-client = "mutexnet.client:main"

[tool.hatch.build.targets.wheel]
packages = ["mutexnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
