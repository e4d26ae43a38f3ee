[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rwdbnet"
version = "0.1.0"
description = "A UDP readers-writers database server with reader, writer and monitor clients"
requires-python = ">=3.10"
dependencies = []
keywords = ["udp", "readers-writers", "concurrency", "networking", "database"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rwdbnet-server = "rwdbnet.server:main"
rwdbnet-reader = "rwdbnet.reader:main"
rwdbnet-writer = "rwdbnet.writer:main"
rwdbnet-monitor = "rwdbnet.monitor:main"

[tool.hatch.build.targets.wheel]
packages = ["rwdbnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
