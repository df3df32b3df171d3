# setup.py

from setuptools import setup, find_packages

setup(
    name="plc-opcua-reader",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "asyncua>=1.0.0",
        "paho-mqtt>=2.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.1.0"
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.4",
            "pytest-asyncio>=0.23.5",
            "pytest-cov>=6.0.0"
        ]
    },
    entry_points={
        "console_scripts": [
            "plc-reader=plc_reader.main:main"
        ]
    }
)
