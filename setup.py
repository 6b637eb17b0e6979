"""SHIFT Organizer setup file."""

from setuptools import find_packages, setup  # type: ignore[import-untyped]

setup(
    name="shiftorg",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    include_package_data=True,
    package_data={"shiftorg": ["templates/*.html"]},
    python_requires=">=3.10",
    install_requires=[
        "flask",
        "flask-admin[sqlalchemy]>=2.0",
        "sqlalchemy>=2.0",
        "alembic",
        "click",
        "firebase-admin",
        "pymysql",
        "pytz",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-mock",
            "pytest-cov",
            "mypy",
            "ruff",
            "types-pytz",
        ],
    },
    entry_points={
        "console_scripts": [
            "shiftorg=shiftorg.commands:cli",
        ],
    },
)
