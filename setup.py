# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the Waypoint workflow orchestration engine
"""

from setuptools import setup, find_packages

setup(
    name="waypoint",
    version="0.1.0",
    description="Workflow orchestration over external MCP tool servers with pause/resume",
    author="Jason Cafarelli",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "aiohttp>=3.9.0",
        "mcp>=1.10.0,<2",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.24.0",
        ]
    },
)
