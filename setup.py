"""
Setup script for package installation
"""
from setuptools import setup, find_packages

setup(
    name="account_auth",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10,<3.14",
    install_requires=[
        "fastapi>=0.110,<0.137",
        "uvicorn>=0.27",
        "sqlalchemy>=2.0",
        "pydantic>=2.0",
        "python-jose[cryptography]>=3.3",
        "bcrypt>=4.0",
        "httpx>=0.26",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
        "postgres": [
            "psycopg2-binary>=2.9",
        ],
    },
)
