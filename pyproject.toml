[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ddexport"
version = "0.1.0"
description = "Datadog trace exporter, payload encoders and header propagator for span data"
requires-python = ">=3.10"
dependencies = []
keywords = ["datadog", "tracing", "apm", "msgpack", "exporter", "propagation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Debuggers",
]

[project.optional-dependencies]
test = ["pytest", "msgpack"]

[tool.hatch.build.targets.wheel]
packages = ["ddexport"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
