import setuptools

setuptools.setup(
    name="passwatch",
    description="Satellite pass prediction and real-time tracking",
    version="1.0.0",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    package_data={"passwatch": ["logging/logging_config.json"]},
    python_requires=">=3.10",
    install_requires=[
        "aiohttp",
        "skyfield",
        "sgp4",
        "numpy",
        "pytz",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "passwatch=passwatch.cli:main",
        ],
    },
)
