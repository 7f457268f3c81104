[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "engramui"
version = "0.1.0"
description = "Skill installer, autostart registration and REST helpers for engram persistent memory"
requires-python = ">=3.10"
keywords = ["engram", "memory", "skills", "autostart", "markdown"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "pyyaml",
    "mistune",
    "packaging",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
engram-ui = "engramui.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["engramui"]

[tool.pytest.ini_options]
addopts = "-ra"
