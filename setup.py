from setuptools import find_packages, setup

setup(
    name="pai-webhdfs",
    version="0.1.0",
    description="WebHDFS virtual filesystem client for OpenPAI cluster storage",
    packages=find_packages(include=["pai_webhdfs", "pai_webhdfs.*"]),
    install_requires=[
        "httpx>=0.27.0",
        "cachetools>=5.0.0",
    ],
    entry_points={
        "console_scripts": [
            "pai-webhdfs=pai_webhdfs.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio>=0.23",
        ],
        "dev": [
            "pytest",
            "pytest-asyncio>=0.23",
            "build",
            "twine",
        ],
    },
)
