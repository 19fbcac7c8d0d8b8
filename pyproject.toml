[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "punchthrough"
version = "0.1.0"
description = "UDP hole punching: a signaling server and an interactive peer-to-peer client with NAT traversal reports"
requires-python = ">=3.10"
dependencies = []
keywords = ["nat", "traversal", "hole-punching", "udp", "p2p", "signaling"]
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
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
punchthrough-server = "punchthrough.server:main"
punchthrough-client = "punchthrough.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["punchthrough"]

[tool.pytest.ini_options]
addopts = "-ra"
