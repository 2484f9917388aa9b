[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sipmedia"
version = "0.1.0"
description = "Telephony media building blocks: G.711 codecs, resampling, mixing, DTMF, tones, RTP and SDP negotiation"
requires-python = ">=3.10"
keywords = [
    "sip",
    "rtp",
    "sdp",
    "dtmf",
    "g711",
    "pcm",
    "audio",
    "telephony",
    "mixer",
    "resample",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Telephony",
    "Topic :: Multimedia :: Sound/Audio",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pyyaml>=6.0",
    "psutil>=5.9",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["sipmedia"]

[tool.hatch.build.targets.sdist]
include = ["sipmedia", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
