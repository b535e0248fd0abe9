from setuptools import setup, find_packages

setup(
    name="diagram-layout-engine",
    version="0.1.0",
    packages=find_packages(exclude=["*.tests", "*.tests.*", "tests"]),
    install_requires=[
        "numpy",
        "pandas",
        "shapely",
        "networkx>=3.0",
        "pydantic>=2",
        "fastapi",
        "uvicorn",
        "matplotlib",
        "seaborn"
    ],
    extras_require={
        "test": ["pytest", "httpx"]
    }
)
