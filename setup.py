# setup.py
from setuptools import setup, find_packages
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="scanlens",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["scanlens", "scanlens.*"]),
    description="OCR for scanned PDFs followed by chunked LLM extraction, summarization and Markdown reconstruction.",
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires=">=3.8",

    install_requires=[
        "openai>=1.0",
        "tenacity",
        "PyMuPDF",
        "pytesseract",
        "python-slugify",
        "tqdm",
        "Pillow",
        "numpy"
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'scanlens=scanlens.cli:main',
        ],
    },
)
