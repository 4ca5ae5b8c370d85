[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "twccfeedback"
version = "0.1.0"
description = "Transport-wide congestion control feedback for RTP: sequence-number stamping, arrival recording and RTCP feedback building"
requires-python = ">=3.10"
dependencies = []
keywords = ["rtp", "rtcp", "twcc", "webrtc", "congestion-control", "transport-cc"]
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
    "Topic :: Communications :: Internet Phone",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["twccfeedback"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
