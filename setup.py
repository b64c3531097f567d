#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Assessment Console Re-scoring - Setup Configuration
Installs the ``config`` and ``reevaluation`` packages and the ``rescore`` command.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Runtime dependencies are kept in requirements.txt
requirements_path = Path(__file__).parent / "requirements.txt"
requirements = [
    line.strip()
    for line in requirements_path.read_text(encoding="utf-8").splitlines()
    if line.strip() and not line.startswith("#")
]

test_requirements = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.21.0",
    "pytest-cov>=4.1.0",
]

setup(
    name="rescore-console",
    version="1.0.0",
    description="Submit, poll and track speech assessment re-scoring jobs",
    long_description=__doc__,
    author="Assessment Console Team",
    python_requires=">=3.9",
    packages=find_packages(include=["config", "reevaluation"]),
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements + [
            "black>=23.0.0",
            "flake8>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rescore=reevaluation.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Education",
        "Framework :: AsyncIO",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="assessment rescoring speech polling progress httpx",
)
