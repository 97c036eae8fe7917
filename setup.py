"""Setup script for Gitorum."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="gitorum",
    version="0.1.0",
    author="Gitorum Team",
    description="A forum stored as Ed25519-signed files in a git repository",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["gitorum.tests"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Communications :: BBS",
        "Topic :: Software Development :: Version Control :: Git",
        "Topic :: Security :: Cryptography",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
)
