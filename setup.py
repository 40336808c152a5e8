"""Package metadata for apiari-common (src/ layout, one import package: apiari)."""

from setuptools import find_packages, setup

setup(
    name="apiari-common",
    version="0.1.0",
    description="JSONL channels and atomic JSON state files for agents sharing a filesystem",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "click>=8.1",
    ],
    extras_require={
        "test": ["pytest>=8"],
    },
    entry_points={
        "console_scripts": [
            "apiari=apiari.cli:cli",
        ],
    },
)
