[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "heapview"
version = "0.1.0"
description = "Analysis models for heap allocation traces: call trees, caller/callee data, charts, size histograms and flame graphs"
requires-python = ">=3.10"
dependencies = []
keywords = ["heap", "memory", "profiling", "flame graph", "allocations", "analysis"]
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
    "Topic :: Software Development :: Debuggers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["heapview"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
