[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "voidio"
version = "0.1.14"
description = "Multi-threaded UDP servers, QUIC Initial packet processing and ELF section parsing."
requires-python = ">=3.10"
keywords = ["udp", "quic", "networking", "elf", "sockets"]
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
    "Topic :: System :: Networking",
    "Topic :: Internet",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["voidio"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
