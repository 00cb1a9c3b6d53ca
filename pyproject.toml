[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "livesrt"
version = "0.1.0"
description = "Building blocks of a live streaming relay server: stream and publisher maps, pull/push relay managers, a byte ring buffer, a levelled logger and a small HTTP client"
requires-python = ">=3.10"
dependencies = []
keywords = ["streaming", "live", "relay", "publisher", "player", "ring-buffer", "http"]
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
    "Topic :: Multimedia :: Video",
    "Topic :: Internet",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["livesrt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
