"""
Setup script for vicbf.
"""

from setuptools import setup, find_packages

setup(
    name="vicbf",
    version="0.1.0",
    packages=find_packages(include=["vicbf", "vicbf.*"]),
    package_data={"vicbf": ["py.typed"]},
    python_requires=">=3.8",
    extras_require={"test": ["pytest"]},
)
