from setuptools import find_packages, setup

test_requires = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.21.0",
    "pytest-xdist>=3.3.0",
    "httpx>=0.25.0",
]

setup(
    name="gc-analysis-service",
    version="0.1.0",
    packages=find_packages(
        include=[
            "gc_common",
            "gc_common.*",
            "gc_persistence",
            "gc_persistence.*",
            "gc_analyzer",
            "gc_analyzer.*",
            "gc_controller",
            "gc_controller.*",
            "gc_server",
            "gc_server.*",
            "gc_client",
            "gc_client.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "fastapi>=0.104.0",
        "pydantic>=2.0",
        "uvicorn>=0.24.0",
        "aiosqlite>=0.19.0",
        "numpy>=1.24.0",
        "scipy>=1.10.0",
    ],
    extras_require={
        "test": test_requires,
        "dev": test_requires,
    },
    entry_points={
        "console_scripts": [
            "gc-analyze=gc_client.cli:main",
            "gc-server=gc_server.__main__:main",
        ],
    },
    python_requires=">=3.11",
)
