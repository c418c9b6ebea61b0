"""Setup configuration for q2-discovery."""

from setuptools import setup, find_packages

setup(
    name="q2-discovery",
    version="0.1.0",
    description="Quake II server discovery and status probing",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.31.0",
        "pyyaml>=6.0",
        "click>=8.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "q2-discovery=q2_discovery.cli:main",
        ],
    },
)
