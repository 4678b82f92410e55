[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eportal"
version = "0.1.0"
description = "School portal domain logic: genetic-algorithm timetabling, background task handlers, JWT authentication and services"
requires-python = ">=3.10"
keywords = ["school", "education", "timetable", "genetic-algorithm", "jwt", "jwks", "multi-tenant"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
]
dependencies = [
    "pyjwt",
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["eportal"]

[tool.pytest.ini_options]
addopts = "-ra"
