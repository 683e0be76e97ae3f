[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vkadmit"
version = "0.1.0"
description = "Admission validation and mutation for batch job resources, with webhook serving helpers"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "batch",
    "admission",
    "webhook",
    "validation",
    "scheduling",
    "jobs",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["vkadmit"]

[tool.hatch.build.targets.sdist]
include = ["vkadmit", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
