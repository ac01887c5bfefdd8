"""
Setup script for scenario-trainer.

Scenario Trainer sequences a learner through an ordered catalog of
training scenarios and produces one analytics document per session.
It serves three roles:

1. Training Core - Progression engine, dialogue traversal, recording, scoring
2. Content Pipeline - CI/CD validation for scenario catalogs
3. Replay Tool - Deterministic replay of learner scripts for audits

The 'trainer' command is the primary entry point.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="scenario-trainer",
    version="1.0.0",
    description="Training-scenario sequencer with auditable session analytics",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Scenario Trainer",
    packages=find_namespace_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "trainer=src.trainer.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="training scenarios analytics dialogue education",
)
