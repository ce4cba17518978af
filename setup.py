from setuptools import setup


setup(
    name="sheet-ledger",
    version="0.1.0",
    description="Quarterly activity ledger that ingests messy daily and survey-project sheet exports",
    packages=["sheet_ledger"],
    python_requires=">=3.10",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
        "structlog",
        "rapidfuzz",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "sheet-ledger=sheet_ledger.cli:main",
        ]
    },
)
