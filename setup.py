"""
兼容旧版 pip 的 setup.py
"""

from setuptools import setup, find_packages

setup(
    name="delta-ganttpack",
    version="1.0.0",
    packages=find_packages(include=["ganttpack", "ganttpack.*"]),
    install_requires=[
        "click>=8.0.0",
        "rich>=13.0.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": ["pytest>=7.0.0"],
    },
    entry_points={
        "console_scripts": [
            "gantt=ganttpack.cli:main",
        ],
    },
    python_requires=">=3.10",
)
