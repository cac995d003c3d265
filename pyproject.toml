[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fortiexporter"
version = "0.1.0"
description = "Prometheus exporter that probes FortiGate firewalls through the FortiOS REST API"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["prometheus", "exporter", "fortigate", "fortios", "monitoring", "firewall"]
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
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
fortiexporter = "fortiexporter.server:main"

[tool.hatch.build.targets.wheel]
packages = ["fortiexporter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
