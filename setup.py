#!/usr/bin/env python3
"""
Setup script for BizPulse.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="bizpulse",
    version="0.1.0",
    description="Async client for realtime business notifications over WebSocket and push",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="BizPulse Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "websockets>=14.0",
        "httpx>=0.24.0",
        "click>=8.1.0",
        "python-dotenv>=1.0.0",
        "pyyaml>=6.0",
        "cryptography>=41.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bizpulse=bizpulse.cli.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: AsyncIO",
        "Topic :: Communications",
    ],
    keywords="websocket notifications push realtime asyncio client",
)
