"""
Setup script for netshaper.

This allows the package to be installed in development mode:
    pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name="netshaper",
    version="0.1.0",
    description="pf/dummynet traffic shaping rules for network impairment testing",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ],
        "dev": [
            "pytest",
            "pytest-mock",
            "black",
            "flake8",
            "mypy",
        ],
    },
)
