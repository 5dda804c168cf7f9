#!/usr/bin/env python3
"""
rfm69-radio - Setup Script

For development installation:
    pip install -e .[dev]

On a Raspberry Pi:
    pip install .[hardware,toml]
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read version from package
version = "0.1.0"

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="rfm69-radio",
    version=version,
    description="Async driver for RFM69 sub-GHz FSK packet radios",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="rfm69-radio contributors",
    license="MIT",

    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",

    install_requires=[
        "cryptography>=3.4",
    ],

    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=3.0",
            "black>=22.0",
            "mypy>=0.9",
            "toml>=0.10",
        ],
        "test": [
            "pytest>=7.0",
            "toml>=0.10",
        ],
        "toml": [
            "toml>=0.10",
        ],
        "hardware": [
            "spidev>=3.5",
            "lgpio>=0.2; sys_platform == 'linux'",
            "RPi.GPIO>=0.7; sys_platform == 'linux'",
        ],
    },

    entry_points={
        "console_scripts": [
            "rfm69ctl=rfm69.main:main",
        ],
    },

    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: AsyncIO",
        "Topic :: Communications",
        "Topic :: System :: Hardware :: Hardware Drivers",
    ],

    keywords="rfm69 sx1231 fsk radio spi raspberry-pi asyncio",
)
