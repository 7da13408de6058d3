from setuptools import setup


setup(
    name="meeting-stats",
    version="0.1.0",
    description="Schema inference and statistics for loosely structured bilingual meeting workbooks",
    packages=["meeting_stats"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "meeting-stats=meeting_stats.cli:main",
        ]
    },
)
