from setuptools import setup, find_packages

setup(
    name="parra-ratelimit",
    version="0.1.0",
    packages=find_packages(include=["parra", "parra.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.3",
        "fastapi>=0.110",
        "starlette>=0.36",
        "redis>=5.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
            "fakeredis>=2.20",
            "lupa>=2.0",
        ],
    },
)
