from setuptools import setup, find_packages

setup(
    name="browserhost",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "click>=8.1.7",
        "rich>=13.7.0",
        "psutil>=5.9.0",
        "requests>=2.31.0",
        "playwright>=1.40.0",
        "mcp>=1.10.0,<2",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "browserhost=browserhost.cli:main",
        ],
    },
    python_requires=">=3.10",
    description="Isolated browser sessions over HTTP and MCP, with in-page fetch",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
