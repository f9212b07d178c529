[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mlfilterkit"
version = "0.1.0"
description = "Search-filter tokenizing, SQL store connection helpers and child process launching for ML tracking backends"
requires-python = ">=3.10"
dependencies = [
    "sqlalchemy",
]
keywords = ["tracking", "filter", "lexer", "tokenizer", "sqlalchemy", "subprocess"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Topic :: Database",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mlfilterkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
