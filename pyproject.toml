[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nasne_exporter"
version = "0.1.0"
description = "Prometheus exporter for nasne network recorders"
requires-python = ">=3.10"
dependencies = []
keywords = ["nasne", "prometheus", "exporter", "monitoring", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
nasne_exporter = "nasne_exporter.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["nasne_exporter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
