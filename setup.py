from setuptools import setup, find_packages

setup(
    name="nodelisting",
    version="0.1.0",
    description="Node Listing - публичный реестр самоанонсирующихся нод (регистрация, heartbeat, health-check)",
    author="Node Listing maintainers",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "typer>=0.16.0",
        "rich>=13.7.1",
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "pydantic>=2.6",
        "requests>=2.31",
        "python-dotenv>=1.0",
        "PyYAML>=6.0.2",
    ],
    extras_require={
        "test": [
            "pytest>=8.3.2",
            "httpx>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "nodelisting=nodelisting.apps.cli.app:app",
        ],
    },
)
