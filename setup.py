#!/usr/bin/env python3
"""
wtcache Setup Script
====================
Allows installation of the wtcache package.

Usage:
    pip install -e .                   # Development install
    pip install -e ".[test]"           # With test dependencies
    pip install ".[postgres]"          # With the PostgreSQL driver
"""

from setuptools import setup, find_packages

setup(
    name="wtcache",
    version="1.0.0",
    packages=find_packages(include=["wtcache", "wtcache.*"]),
    python_requires=">=3.10",
    install_requires=[
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "postgres": [
            "psycopg2-binary>=2.9",
        ],
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "wtcache=wtcache.server:main",
        ],
    },
)
