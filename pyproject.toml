[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mediarelay"
version = "0.1.0"
description = "A low-latency TCP relay that fans out media frames from publishers to subscribers"
requires-python = ">=3.10"
dependencies = []
keywords = ["streaming", "relay", "media", "pubsub", "tcp", "low-latency"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
stream-relay-server = "mediarelay.server:main"
publisher-client = "mediarelay.clients:publisher_main"
subscriber-client = "mediarelay.clients:subscriber_main"

[tool.hatch.build.targets.wheel]
packages = ["mediarelay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
