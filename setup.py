"""Setuptools build hooks for strided."""

from __future__ import annotations

from setuptools import find_packages, setup

# The project ships pure Python modules only, so we intentionally avoid
# overriding ``bdist_wheel``.  Leaving the default command class in place
# lets the wheel build as ``py3-none-any``.
setup(
    name="strided",
    version="0.1.0",
    description="Strided N-dimensional containers over owned or adapted buffers",
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=["numpy>=1.22"],
    extras_require={
        "test": ["pytest>=7", "hypothesis>=6"],
    },
)
