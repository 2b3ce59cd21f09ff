"""Setup file for editable install compatibility."""
from setuptools import setup, find_packages

setup(
    name="portfolio-risk",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.22",
        "pandas>=2.0",
        "scipy>=1.7",
        "matplotlib>=3.4",
        "openpyxl>=3.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "pf-analyze=portfolio_risk.cli.main:main",
        ],
    },
    python_requires=">=3.9",
)
