"""Setup configuration for the modwarden Matrix moderation bot."""

from setuptools import setup, find_packages

setup(
    name="modwarden",
    version="0.0.1",
    description="Policy-list enforcement and real-time protections for Matrix rooms",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "aiohttp>=3.9",
        "aiosqlite>=0.19",
        "prompt_toolkit>=3.0",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "modwarden=modwarden.main:main",
        ],
    },
)
