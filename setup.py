"""Package the bbevent blackbox event decoder."""

from setuptools import setup, find_packages

setup(
    name="bbevent",
    version="0.1.0",
    description="Blackbox flight log event frame decoder",
    package_dir={"": "python"},
    packages=find_packages("python"),
    python_requires=">=3.9",
    extras_require={"test": ["pytest"]},
)
