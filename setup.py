"""
Setup script for cadence.

Cadence is a terminal study and productivity companion built around
three scheduling engines:

1. Spaced repetition - SM-2 review intervals for flashcards
2. Recurring tasks - next occurrence on completion
3. Focus sessions - Pomodoro timer and cycle sequencing

The 'cadence' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="cadence-cli",
    version="1.0.0",
    description="Study and productivity scheduling core: SM-2 reviews, recurring tasks, Pomodoro sessions",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Cadence",
    packages=find_packages(include=["cadence", "cadence.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Dates
        "python-dateutil>=2.8.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cadence=cadence.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Office/Business :: Scheduling",
    ],
    keywords="spaced-repetition sm2 pomodoro recurring-tasks cli",
)
