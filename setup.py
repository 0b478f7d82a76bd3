from setuptools import setup


setup(
    name="siteimprove-dashboard",
    version="0.3.0",
    description="Local dashboard for Siteimprove spelling reports: ingest CSV/Excel exports, filter and re-export",
    packages=["siteimprove_dashboard"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "xlrd",
        "streamlit>=1.35",
    ],
    entry_points={
        "console_scripts": [
            "siteimprove-dashboard=siteimprove_dashboard.cli:main",
        ]
    },
)
