from setuptools import find_packages, setup

setup(
    name="workload-runner",
    version="0.1.0",
    packages=find_packages(
        include=[
            "runner_common",
            "runner_common.*",
            "runner_controller",
            "runner_controller.*",
            "runner_server",
            "runner_server.*",
            "runner_client",
            "runner_client.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "runnerctl=runner_client.cli:cli",
            "runner-controller=runner_controller.__main__:main",
        ],
    },
    python_requires=">=3.10",
)
