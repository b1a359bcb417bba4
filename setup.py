#!/usr/bin/env python3
"""
Setup script for roster-sync

This script installs the roster sync service and its dependencies.

Usage:
    pip install .
    pip install -e ".[dev]"  # For development mode
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text()

setup(
    name="roster-sync",
    version="1.0.0",
    description="Keeps a PostgreSQL member list in step with an active roster read over ODBC",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "pyodbc>=4.0.39",
        "psycopg2-binary>=2.9.9",
        "APScheduler>=3.10.4,<4",
        "requests>=2.31.0",
        "prometheus-client>=0.19.0",
        "opentelemetry-api>=1.21.0",
        "opentelemetry-sdk>=1.21.0",
        "opentelemetry-exporter-otlp-proto-grpc>=1.21.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.3",
            "pytest-cov>=4.1.0",
            "hypothesis>=6.92.0",
        ],
        "dev": [
            "pytest>=7.4.3",
            "pytest-cov>=4.1.0",
            "hypothesis>=6.92.0",
            "black>=23.12.0",
            "flake8>=6.1.0",
            "mypy>=1.7.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "roster-sync=roster_sync.cli:main",
        ],
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Topic :: Database",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
    ],
)
