from setuptools import find_packages, setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

version = {}
with open("ttyml/_version.py", "r", encoding="utf-8") as fh:
    exec(fh.read(), version)

setup(
    name="ttyml",
    version=version["version"],
    description="Terminal client for TTYML, an XML markup for line-oriented terminal applications served over HTTP",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.31.0",
        "types-requests>=2.31.0",
        "rich>=14.2.0",
        "defusedxml>=0.7.1",
        "pyyaml>=6.0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ttyml=ttyml.ttyml:main",
        ],
    },
)
