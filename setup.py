#!/usr/bin/env python3
"""
Setup configuration for proxdial
"""

from setuptools import setup, find_packages
import os
from pathlib import Path

# Read the full description
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8') if (this_directory / "README.md").exists() else ""

# Read the version from __init__.py file
def get_version():
    """Get the version from __init__.py file"""
    version_file = os.path.join(os.path.dirname(__file__), 'proxdial', '__init__.py')
    try:
        with open(version_file, 'r', encoding='utf-8') as f:
            for line in f:
                if line.strip().startswith('__version__'):
                    return line.split('=')[1].strip().strip('"').strip("'")
    except FileNotFoundError:
        pass
    return "1.0.0"  # Default version

# Essential required dependencies
REQUIRED = [
    "click>=8.0.0",          # CLI interface
    "pyyaml>=6.0",           # Configuration files
    "rich>=13.0.0",          # Status lines and scan tables
    "PySocks>=1.7.1",        # SOCKS5 proxy handshake
    "urllib3>=1.26.0",       # TLS inside an HTTPS proxy tunnel
]

# Optional dependencies
EXTRAS = {
    'dev': [
        "pytest>=7.0.0",
        "pytest-cov>=4.0.0",
        "cryptography>=41.0.0",  # Self-signed certificates for TLS tests
    ]
}

setup(
    # Basic package information
    name="proxdial",
    version=get_version(),
    description="Outbound TCP connections through HTTP, HTTPS and SOCKS5 proxies, with TLS and port scanning",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # License and classifications
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Internet :: Proxy Servers",
        "Topic :: System :: Networking",
    ],
    keywords="proxy, socks5, http-connect, tls, netcat, port-scanner, networking",

    # Python requirements
    python_requires=">=3.8",

    # Packages and files
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,

    # Dependencies
    install_requires=REQUIRED,
    extras_require=EXTRAS,

    # Entry points (Console Scripts)
    entry_points={
        'console_scripts': [
            'proxdial=proxdial.main:main',
        ],
    },

    zip_safe=False,
    platforms=["any"],
)
