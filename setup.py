from setuptools import setup, find_packages

with open("requirements.txt", "r") as f:
    requirements = [line for line in f.read().splitlines() if line.strip()]

setup(
    name="nim_proxy",
    version="1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
    },
)
