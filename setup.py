"""Setup configuration for Taskcord Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="taskcord",
    version="0.1.0",
    description="A Discord bot for tracking server tasks and chores",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.5",
        "aiosqlite>=0.19",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "jsonschema>=4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "taskcord=taskcord.main:main",
        ],
    },
)
