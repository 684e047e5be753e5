[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vehicle-telemetry"
version = "0.1.0"
description = "Receive and decode vehicle telemetry: binary and JSON sensor frames, gauge geometry, GPS tracks and bounded plot series."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "telemetry",
    "vehicle",
    "imu",
    "gps",
    "gauge",
    "sensor",
    "protocol",
    "dashboard",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Visualization",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
vehicle-telemetry = "vehicle_telemetry.server:main"

[tool.hatch.build.targets.wheel]
packages = ["vehicle_telemetry"]

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
