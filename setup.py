#!/usr/bin/env python

from setuptools import setup, find_packages

setup(
    name="dayz_tool",
    version="1.0.0",
    description="Python tools for DayZ server mod management and administration",
    author="GeNe FRAG",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    include_package_data=True,
    python_requires=">=3.7",
    install_requires=[
        "pandas>=1.0.0",
        "openpyxl>=3.0.0",
        "lxml>=4.6.0",
    ],
    extras_require={
        "test": ["pytest>=6.0"],
    },
    entry_points={
        "console_scripts": [
            "dayz-mods=dayz_tool.mods.cli:main",
            "dayz-profile=dayz_tool.profiles:main",
            # Generators
            "dayz-guid=dayz_tool.generators.guid:main",
            "dayz-dnc=dayz_tool.generators.dnc:main",
        ],
    },
)
