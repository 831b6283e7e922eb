"""Setup configuration for the Room Sync server."""

from setuptools import setup, find_packages

setup(
    name="roomsync",
    version="0.1.0",
    description="Durable real-time shared state for chat and partnership rooms",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.9",
        "SQLAlchemy>=2.0",
        "websockets>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "roomsync-server=roomsync.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
