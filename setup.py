"""Setup configuration for the Autoimmune Reference Console package."""

from setuptools import setup, find_packages

setup(
    name="autoimmune-console",
    version="1.0.0",
    description="Cascading filter and search console for an autoimmune disease reference database",
    author="",
    author_email="",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "httpx>=0.26.0",
        "requests>=2.31.0",
        "tenacity>=8.2.0",
        "pydantic>=2.5.0",
        "pandas>=2.1.0",
        "openpyxl>=3.1.0",
        "python-dotenv>=1.0.0",
        "tqdm>=4.66.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-cov>=4.1.0",
            "pytest-asyncio>=0.23.0",
            "black>=24.1.0",
            "ruff>=0.2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "autoimmune-console=autoimmune_console.cli:main",
        ],
    },
)
