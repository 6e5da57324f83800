# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from setuptools import setup, find_packages

setup(
    name="mlcbuild",
    version="0.1.0",
    description="Declarative build orchestration for MLC LLM: configure, compile, validate and package",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["mlcbuild", "mlcbuild.*"]),
    install_requires=[
        "click>=8.1",
        "packaging>=25.0",
        "psutil>=5.9.4",
        "pydantic>=2.7",
        "pydantic-settings>=2.7",
        "pyyaml>=6.0",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Programming Language :: Python",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    license="MIT",
    entry_points={
        'console_scripts': [
            'mlcbuild=mlcbuild.cli:main',
        ],
    },
    python_requires=">=3.10",
)
